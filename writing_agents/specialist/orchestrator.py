"""
Writing Specialist Orchestrator

Drives one conversational turn as a finite-state machine:

    IDLE → AWAITING_MODEL_RESPONSE → ANSWERING → DONE
                                   → TOOL_REQUESTED → AWAITING_FOLLOW_UP → DONE

At most one tool round trip happens per turn. The follow-up response is always
final, whatever it contains.
"""

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from ..common.document_store import DocumentStore
from ..common.embedding_service import EmbeddingService
from ..common.errors import ModelNotReady, ToolError
from ..common.llm_client import LLMClient, find_block
from .analyzer import PlaceholderAnalyzer, TextAnalyzer
from .executor import ToolExecutor
from .tools import ToolInvocation, ToolRegistry

logger = logging.getLogger("writing_agents.specialist.orchestrator")

SYSTEM_PROMPT = """You are a writing specialist that helps students with their essays. \
You have access to a corpus of successful essays and can analyze writing, provide \
feedback, and suggest improvements.

If the user provides a piece of writing to analyze, use the analyze_text tool. If they \
want to see examples or find similar essays, use the search_similar or \
get_examples_by_topic tools."""

NO_RESPONSE_FALLBACK = "I apologize, but I could not generate a response."
FOLLOW_UP_FALLBACK = "I processed your request using my tools."
TOOL_FAILURE_APOLOGY = (
    "I'm sorry, I couldn't complete that request with my tools. "
    "Please try rephrasing it."
)
NOT_READY_APOLOGY = (
    "AI services are still initializing. Please wait a moment and try again."
)
ERROR_APOLOGY = (
    "I apologize, but I encountered an error processing your request. Please try again."
)


class TurnState(str, Enum):
    IDLE = "idle"
    AWAITING_MODEL_RESPONSE = "awaiting_model_response"
    TOOL_REQUESTED = "tool_requested"
    ANSWERING = "answering"
    AWAITING_FOLLOW_UP = "awaiting_follow_up"
    DONE = "done"


TRANSITIONS = {
    TurnState.IDLE: {TurnState.AWAITING_MODEL_RESPONSE},
    TurnState.AWAITING_MODEL_RESPONSE: {TurnState.TOOL_REQUESTED, TurnState.ANSWERING},
    TurnState.TOOL_REQUESTED: {TurnState.AWAITING_FOLLOW_UP},
    TurnState.ANSWERING: {TurnState.DONE},
    TurnState.AWAITING_FOLLOW_UP: {TurnState.DONE},
}


@dataclass
class ConversationTurn:
    """State of a single request: message, optional tool round trip, answer."""
    message: str
    session_id: str = "default"
    state: TurnState = TurnState.IDLE
    initial_content: List[Dict[str, Any]] = field(default_factory=list)
    invocation: Optional[ToolInvocation] = None
    tool_use: Optional[Dict[str, Any]] = None
    tool_result: Any = None
    answer: Optional[str] = None
    error: Optional[str] = None
    model_calls: int = 0


class WritingSpecialist:
    """
    Conversational agent over the document corpus.

    Usage:
        agent = WritingSpecialist(llm, encoder, store)
        answer = await agent.process_message("Find essays about identity", "session-1")
    """

    def __init__(
        self,
        llm_client: LLMClient,
        encoder: EmbeddingService,
        store: DocumentStore,
        registry: Optional[ToolRegistry] = None,
        analyzer: Optional[TextAnalyzer] = None,
        search_threshold: float = 0.78,
        topic_limit: int = 10,
        system_prompt: str = SYSTEM_PROMPT,
    ):
        self._llm = llm_client
        self._registry = registry or ToolRegistry()
        self._executor = ToolExecutor(
            encoder=encoder,
            store=store,
            analyzer=analyzer or PlaceholderAnalyzer(),
            search_threshold=search_threshold,
            topic_limit=topic_limit,
        )
        self._system_prompt = system_prompt
        self._handlers = {
            TurnState.IDLE: self._start,
            TurnState.AWAITING_MODEL_RESPONSE: self._request_initial,
            TurnState.ANSWERING: self._answer,
            TurnState.TOOL_REQUESTED: self._run_tool,
            TurnState.AWAITING_FOLLOW_UP: self._request_follow_up,
        }

    async def process_message(self, message: str, session_id: str = "default") -> str:
        """Run one turn and return the answer text. Never raises."""
        turn = await self.run_turn(message, session_id)
        return turn.answer

    async def run_turn(self, message: str, session_id: str = "default") -> ConversationTurn:
        turn = ConversationTurn(message=message, session_id=session_id)

        try:
            while turn.state is not TurnState.DONE:
                next_state = await self._handlers[turn.state](turn)
                if next_state not in TRANSITIONS[turn.state]:
                    raise RuntimeError(
                        f"Illegal transition {turn.state.value} -> {next_state.value}"
                    )
                turn.state = next_state
        except ToolError as e:
            logger.warning("Rejected tool invocation (session=%s): %s", session_id, e)
            self._abort(turn, TOOL_FAILURE_APOLOGY, e)
        except ModelNotReady as e:
            logger.warning("Embedding model not ready (session=%s): %s", session_id, e)
            self._abort(turn, NOT_READY_APOLOGY, e)
        except Exception as e:
            logger.error("Error in writing specialist (session=%s): %s", session_id, e, exc_info=True)
            self._abort(turn, ERROR_APOLOGY, e)

        return turn

    @staticmethod
    def _abort(turn: ConversationTurn, apology: str, error: Exception) -> None:
        turn.answer = apology
        turn.error = f"{type(error).__name__}: {error}"
        turn.state = TurnState.DONE

    # ---------- State handlers ---------- #

    async def _start(self, turn: ConversationTurn) -> TurnState:
        return TurnState.AWAITING_MODEL_RESPONSE

    async def _request_initial(self, turn: ConversationTurn) -> TurnState:
        turn.initial_content = await self._call_model(
            turn, [{"role": "user", "content": turn.message}]
        )
        turn.tool_use = find_block(turn.initial_content, "tool_use")
        return TurnState.TOOL_REQUESTED if turn.tool_use else TurnState.ANSWERING

    async def _answer(self, turn: ConversationTurn) -> TurnState:
        text = find_block(turn.initial_content, "text")
        turn.answer = text["text"] if text else NO_RESPONSE_FALLBACK
        return TurnState.DONE

    async def _run_tool(self, turn: ConversationTurn) -> TurnState:
        tool_use = turn.tool_use
        turn.invocation = self._registry.validate(
            tool_use.get("name", ""), tool_use.get("input"), tool_use.get("id", "")
        )
        logger.info("Executing tool %s (session=%s)", turn.invocation.name, turn.session_id)
        turn.tool_result = await self._executor.execute(turn.invocation)
        return TurnState.AWAITING_FOLLOW_UP

    async def _request_follow_up(self, turn: ConversationTurn) -> TurnState:
        messages = [
            {"role": "user", "content": turn.message},
            {"role": "assistant", "content": turn.initial_content},
            {
                "role": "user",
                "content": [
                    {
                        "type": "tool_result",
                        "tool_use_id": turn.invocation.id,
                        "content": json.dumps(turn.tool_result, default=str),
                    }
                ],
            },
        ]
        content = await self._call_model(turn, messages)

        text = find_block(content, "text")
        turn.answer = text["text"] if text else FOLLOW_UP_FALLBACK
        return TurnState.DONE

    async def _call_model(
        self, turn: ConversationTurn, messages: List[Dict[str, Any]]
    ) -> List[Dict[str, Any]]:
        turn.model_calls += 1
        return await self._llm.create(
            messages,
            tools=self._registry.to_anthropic(),
            system=self._system_prompt,
        )
