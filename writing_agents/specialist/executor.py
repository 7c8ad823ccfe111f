"""
Tool Executor

Runs validated tool invocations against the encoder, document store and analyzer.

Read paths (search_similar, get_examples_by_topic) degrade any failure raised
by the store to an empty list so the conversation keeps flowing. The query is
encoded before the store is called, so encoder failures propagate.
"""

import logging
from typing import Any, Dict, List

from ..common.document_store import DocumentStore
from ..common.embedding_service import EmbeddingService
from ..common.schemas import Document
from .analyzer import TextAnalyzer
from .tools import (
    AnalyzeTextArgs,
    GetExamplesByTopicArgs,
    SearchSimilarArgs,
    ToolInvocation,
)

logger = logging.getLogger("writing_agents.specialist.executor")


def _public(document: Document) -> Dict[str, Any]:
    """Serialize a document for a tool result, without its embedding"""
    return document.model_dump(mode="json", exclude={"embedding"}, exclude_none=True)


class ToolExecutor:
    """Executes tool invocations and returns JSON-serializable results."""

    def __init__(
        self,
        encoder: EmbeddingService,
        store: DocumentStore,
        analyzer: TextAnalyzer,
        search_threshold: float = 0.78,
        topic_limit: int = 10,
    ):
        self._encoder = encoder
        self._store = store
        self._analyzer = analyzer
        self._threshold = search_threshold
        self._topic_limit = topic_limit

    async def execute(self, invocation: ToolInvocation) -> Any:
        args = invocation.args

        if isinstance(args, AnalyzeTextArgs):
            return self.analyze_text(args)
        if isinstance(args, SearchSimilarArgs):
            return await self.search_similar(args)
        if isinstance(args, GetExamplesByTopicArgs):
            return await self.get_examples_by_topic(args)

        raise TypeError(f"Unsupported tool arguments: {type(args).__name__}")

    def analyze_text(self, args: AnalyzeTextArgs) -> Dict[str, Any]:
        analysis = self._analyzer.analyze(args.text, args.analysis_mode)
        return analysis.model_dump(mode="json")

    async def search_similar(self, args: SearchSimilarArgs) -> List[Dict[str, Any]]:
        query_vector = await self._encoder.encode(args.query)
        category = args.category.value if args.category else None

        try:
            matches = await self._store.query(
                query_vector,
                category=category,
                threshold=self._threshold,
                limit=args.limit,
            )
        except Exception as e:
            logger.error("Error searching similar documents: %s", e)
            return []

        return [_public(m) for m in matches]

    async def get_examples_by_topic(self, args: GetExamplesByTopicArgs) -> List[Dict[str, Any]]:
        category = args.category.value if args.category else None

        try:
            examples = await self._store.get_by_tag(
                args.topic, category=category, limit=self._topic_limit
            )
        except Exception as e:
            logger.error("Error getting examples for topic %r: %s", args.topic, e)
            return []

        return [_public(doc) for doc in examples]
