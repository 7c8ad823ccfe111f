"""
Tool Registry

The fixed set of tools the language model may invoke, their parameter
contracts, and validation of model-issued invocations into typed arguments.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Type, Union

from pydantic import BaseModel, Field, ValidationError

from ..common.errors import InvalidArguments, UnknownTool
from ..common.schemas import AnalysisMode, Category

logger = logging.getLogger("writing_agents.specialist.tools")

ANALYZE_TEXT = "analyze_text"
SEARCH_SIMILAR = "search_similar"
GET_EXAMPLES_BY_TOPIC = "get_examples_by_topic"

SEARCH_CATEGORY_VALUES = [c.value for c in Category if c is not Category.OTHER] + ["all"]
EXAMPLE_CATEGORY_VALUES = [c.value for c in Category if c is not Category.OTHER]


# ============================================================================
# Typed arguments (one variant per tool)
# ============================================================================

class AnalyzeTextArgs(BaseModel):
    text: str = Field(..., min_length=1)
    analysis_mode: AnalysisMode


class SearchSimilarArgs(BaseModel):
    query: str = Field(..., min_length=1)
    category: Optional[Category] = None
    limit: int = Field(default=5, ge=1)


class GetExamplesByTopicArgs(BaseModel):
    topic: str = Field(..., min_length=1)
    category: Optional[Category] = None


ToolArgs = Union[AnalyzeTextArgs, SearchSimilarArgs, GetExamplesByTopicArgs]


# ============================================================================
# Schemas
# ============================================================================

@dataclass
class ToolParameter:
    name: str
    type: str  # JSON schema type
    description: str
    required: bool = False
    enum: Optional[List[str]] = None
    default: Any = None


@dataclass
class ToolSchema:
    name: str
    description: str
    parameters: List[ToolParameter]
    args_model: Type[BaseModel]

    def input_schema(self) -> Dict[str, Any]:
        """JSON-schema parameter contract"""
        properties: Dict[str, Any] = {}
        for param in self.parameters:
            prop: Dict[str, Any] = {"type": param.type, "description": param.description}
            if param.enum is not None:
                prop["enum"] = list(param.enum)
            if param.default is not None:
                prop["default"] = param.default
            properties[param.name] = prop

        return {
            "type": "object",
            "properties": properties,
            "required": [p.name for p in self.parameters if p.required],
        }

    def to_anthropic(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema(),
        }


@dataclass
class ToolInvocation:
    """A validated tool call issued by the model"""
    id: str
    name: str
    args: ToolArgs
    raw_input: Dict[str, Any] = field(default_factory=dict)


DEFAULT_TOOLS: List[ToolSchema] = [
    ToolSchema(
        name=ANALYZE_TEXT,
        description="Analyze a piece of writing for structure and content, and provide feedback",
        parameters=[
            ToolParameter("text", "string", "The text to analyze", required=True),
            ToolParameter(
                "analysis_mode", "string", "Type of analysis to perform",
                required=True, enum=[m.value for m in AnalysisMode],
            ),
        ],
        args_model=AnalyzeTextArgs,
    ),
    ToolSchema(
        name=SEARCH_SIMILAR,
        description="Search for similar documents in the corpus using semantic similarity",
        parameters=[
            ToolParameter("query", "string", "Text to search for similar documents", required=True),
            ToolParameter(
                "category", "string", "Category of documents to search",
                enum=SEARCH_CATEGORY_VALUES,
            ),
            ToolParameter("limit", "integer", "Number of similar documents to return", default=5),
        ],
        args_model=SearchSimilarArgs,
    ),
    ToolSchema(
        name=GET_EXAMPLES_BY_TOPIC,
        description="Get example documents by topic",
        parameters=[
            ToolParameter("topic", "string", "Topic to find examples for", required=True),
            ToolParameter(
                "category", "string", "Category of examples to retrieve",
                enum=EXAMPLE_CATEGORY_VALUES,
            ),
        ],
        args_model=GetExamplesByTopicArgs,
    ),
]


class ToolRegistry:
    """
    Registry of tool schemas, fixed at construction.

    Usage:
        registry = ToolRegistry()
        invocation = registry.validate("search_similar", {"query": "..."}, "toolu_1")
    """

    def __init__(self, schemas: Optional[List[ToolSchema]] = None):
        self._schemas: Dict[str, ToolSchema] = {}
        for schema in schemas if schemas is not None else DEFAULT_TOOLS:
            if schema.name in self._schemas:
                raise ValueError(f"Duplicate tool name: {schema.name}")
            self._schemas[schema.name] = schema

    @property
    def names(self) -> List[str]:
        return list(self._schemas)

    def get(self, name: str) -> ToolSchema:
        if name not in self._schemas:
            raise UnknownTool(name)
        return self._schemas[name]

    def to_anthropic(self) -> List[Dict[str, Any]]:
        return [schema.to_anthropic() for schema in self._schemas.values()]

    def validate(
        self,
        name: str,
        raw_input: Any,
        invocation_id: str = "",
    ) -> ToolInvocation:
        """
        Check an invocation against its schema and build typed arguments.

        Raises:
            UnknownTool: name is not registered
            InvalidArguments: required parameter missing, enum value outside
                its closed set, or a value of the wrong type
        """
        schema = self.get(name)

        if raw_input is None:
            raw_input = {}
        if not isinstance(raw_input, dict):
            raise InvalidArguments(name, "arguments must be an object")

        for param in schema.parameters:
            value = raw_input.get(param.name)
            if value is None:
                if param.required:
                    raise InvalidArguments(name, f"missing required parameter '{param.name}'")
                continue
            if param.enum is not None and value not in param.enum:
                raise InvalidArguments(
                    name, f"'{param.name}' must be one of {param.enum}, got {value!r}"
                )

        known = {p.name: raw_input[p.name] for p in schema.parameters
                 if raw_input.get(p.name) is not None}
        # "all" is the search tool's spelling of "no category filter"
        if known.get("category") == "all":
            known.pop("category")

        try:
            args = schema.args_model.model_validate(known)
        except ValidationError as e:
            raise InvalidArguments(name, _summarize(e)) from e

        logger.debug("Validated %s invocation %s", name, invocation_id)
        return ToolInvocation(id=invocation_id, name=name, args=args, raw_input=dict(raw_input))


def _summarize(error: ValidationError) -> str:
    parts = []
    for err in error.errors():
        loc = ".".join(str(x) for x in err.get("loc", ()))
        parts.append(f"{loc}: {err.get('msg')}")
    return "; ".join(parts)
