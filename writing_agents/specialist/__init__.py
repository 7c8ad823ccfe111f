"""
Writing Specialist - Retrieval-Augmented Writing Feedback

Answers a user's message, optionally running one tool against the corpus.

Key Components:
- ToolRegistry: Tool schemas and invocation validation
- ToolExecutor: Runs analyze_text, search_similar, get_examples_by_topic
- WritingSpecialist: One-turn state machine with at most one tool round trip
- WritingService: Request surface for the transport and HTTP layers

Pipeline:
1. Send the user message and tool schemas to the model
2. If a tool is requested, validate and execute it
3. Send exactly one follow-up carrying the tool result
4. Return the model's text answer
"""

from .analyzer import PlaceholderAnalyzer, TextAnalyzer
from .executor import ToolExecutor
from .orchestrator import ConversationTurn, TurnState, WritingSpecialist
from .service import WritingService
from .tools import ToolInvocation, ToolRegistry, ToolSchema

__all__ = [
    "PlaceholderAnalyzer",
    "TextAnalyzer",
    "ToolExecutor",
    "ConversationTurn",
    "TurnState",
    "WritingSpecialist",
    "WritingService",
    "ToolInvocation",
    "ToolRegistry",
    "ToolSchema",
]
