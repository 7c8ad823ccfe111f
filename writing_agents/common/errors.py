"""
Error taxonomy for the writing agents.

Read paths in the tool layer degrade store failures to empty results;
everything else here is raised to the caller.
"""


class WritingAgentError(Exception):
    """Base class for all writing agent errors."""
    pass


class ModelNotReady(WritingAgentError):
    """Embedding model could not be loaded. Retryable: try again shortly."""
    pass


class DimensionMismatch(WritingAgentError, ValueError):
    """Two vectors of different lengths were compared."""

    def __init__(self, left: int, right: int):
        super().__init__(f"Vector dimension mismatch: {left} vs {right}")
        self.left = left
        self.right = right


class ToolError(WritingAgentError):
    """A tool invocation was rejected before dispatch."""
    pass


class UnknownTool(ToolError):
    def __init__(self, name: str):
        super().__init__(f"Unknown tool: {name}")
        self.name = name


class InvalidArguments(ToolError):
    def __init__(self, tool_name: str, reason: str):
        super().__init__(f"Invalid arguments for {tool_name}: {reason}")
        self.tool_name = tool_name
        self.reason = reason


class DocumentStoreError(WritingAgentError):
    """Document store operation failed."""
    pass


class DocumentNotFound(WritingAgentError):
    def __init__(self, document_id: str):
        super().__init__(f"Document not found: {document_id}")
        self.document_id = document_id
