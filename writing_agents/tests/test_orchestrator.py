"""
Tests for the Writing Specialist orchestrator

The Anthropic client is mocked; the encoder uses a fake model and the store
is in memory.
"""

import json

import pytest
from unittest.mock import AsyncMock, Mock


def _response(*blocks):
    return Mock(content=list(blocks))


def _text(text):
    return {"type": "text", "text": text}


def _tool_use(name, tool_input, tool_id="toolu_01"):
    return {"type": "tool_use", "id": tool_id, "name": name, "input": tool_input}


@pytest.fixture
def anthropic_client():
    client = Mock()
    client.messages.create = AsyncMock()
    return client


@pytest.fixture
def store():
    from writing_agents.common.document_store import InMemoryDocumentStore

    return InMemoryDocumentStore()


@pytest.fixture
def agent(anthropic_client, encoder, store):
    from writing_agents.common.llm_client import LLMClient
    from writing_agents.specialist.orchestrator import WritingSpecialist

    return WritingSpecialist(LLMClient(client=anthropic_client), encoder, store)


class TestLLMClient:
    """Tests for LLMClient"""

    def test_unavailable_without_key(self):
        from writing_agents.common.llm_client import LLMClient

        assert LLMClient(api_key=None).is_available is False

    @pytest.mark.asyncio
    async def test_create_unavailable_raises(self):
        from writing_agents.common.llm_client import LLMClient

        with pytest.raises(RuntimeError):
            await LLMClient().create([{"role": "user", "content": "hi"}])

    @pytest.mark.asyncio
    async def test_create_passes_tools_and_system(self, anthropic_client):
        from writing_agents.common.llm_client import LLMClient

        anthropic_client.messages.create.return_value = _response(_text("hello"))
        llm = LLMClient(client=anthropic_client, model="test-model", max_tokens=100)

        content = await llm.create(
            [{"role": "user", "content": "hi"}], tools=[{"name": "t"}], system="be brief"
        )

        kwargs = anthropic_client.messages.create.call_args.kwargs
        assert kwargs["model"] == "test-model"
        assert kwargs["max_tokens"] == 100
        assert kwargs["tools"] == [{"name": "t"}]
        assert kwargs["system"] == "be brief"
        assert content == [_text("hello")]

    @pytest.mark.asyncio
    async def test_sdk_blocks_converted_to_dicts(self, anthropic_client):
        from writing_agents.common.llm_client import LLMClient

        block = Mock()
        block.model_dump.return_value = _text("converted")
        anthropic_client.messages.create.return_value = _response(block)

        content = await LLMClient(client=anthropic_client).create([])

        assert content == [_text("converted")]
        block.model_dump.assert_called_once_with(exclude_none=True)

    def test_find_block(self):
        from writing_agents.common.llm_client import find_block

        content = [_text("a"), _tool_use("search_similar", {}), _text("b")]

        assert find_block(content, "text") == _text("a")
        assert find_block(content, "tool_use")["name"] == "search_similar"
        assert find_block(content, "image") is None


class TestDirectAnswer:
    """Turns where the model answers without a tool"""

    @pytest.mark.asyncio
    async def test_returns_text_verbatim(self, agent, anthropic_client):
        anthropic_client.messages.create.return_value = _response(_text("Here is some advice."))

        answer = await agent.process_message("How do I start my essay?")

        assert answer == "Here is some advice."
        assert anthropic_client.messages.create.await_count == 1

    @pytest.mark.asyncio
    async def test_first_request_shape(self, agent, anthropic_client):
        from writing_agents.specialist.orchestrator import SYSTEM_PROMPT

        anthropic_client.messages.create.return_value = _response(_text("ok"))

        await agent.process_message("Hello")

        kwargs = anthropic_client.messages.create.call_args.kwargs
        assert kwargs["messages"] == [{"role": "user", "content": "Hello"}]
        assert kwargs["system"] == SYSTEM_PROMPT
        assert [t["name"] for t in kwargs["tools"]] == [
            "analyze_text", "search_similar", "get_examples_by_topic",
        ]

    @pytest.mark.asyncio
    async def test_no_text_fallback(self, agent, anthropic_client):
        from writing_agents.specialist.orchestrator import NO_RESPONSE_FALLBACK

        anthropic_client.messages.create.return_value = _response()

        assert await agent.process_message("Hello") == NO_RESPONSE_FALLBACK

    @pytest.mark.asyncio
    async def test_run_turn_records_path(self, agent, anthropic_client):
        from writing_agents.specialist.orchestrator import TurnState

        anthropic_client.messages.create.return_value = _response(_text("ok"))

        turn = await agent.run_turn("Hello", "session-9")

        assert turn.state == TurnState.DONE
        assert turn.session_id == "session-9"
        assert turn.model_calls == 1
        assert turn.invocation is None
        assert turn.error is None


class TestToolRoundTrip:
    """Turns with exactly one tool round trip"""

    @pytest.mark.asyncio
    async def test_two_model_calls(self, agent, anthropic_client):
        anthropic_client.messages.create.side_effect = [
            _response(_text("Let me look."), _tool_use("search_similar", {"query": "identity"})),
            _response(_text("I found nothing similar yet.")),
        ]

        answer = await agent.process_message("Find essays about identity")

        assert answer == "I found nothing similar yet."
        assert anthropic_client.messages.create.await_count == 2

    @pytest.mark.asyncio
    async def test_follow_up_carries_tool_result(self, agent, anthropic_client):
        initial = [_tool_use("analyze_text", {"text": "My essay", "analysis_mode": "quick_check"}, "toolu_42")]
        anthropic_client.messages.create.side_effect = [
            _response(*initial),
            _response(_text("Your hook is strong.")),
        ]

        await agent.process_message("Analyze: My essay")

        messages = anthropic_client.messages.create.call_args_list[1].kwargs["messages"]
        assert messages[0] == {"role": "user", "content": "Analyze: My essay"}
        assert messages[1] == {"role": "assistant", "content": initial}

        result_block = messages[2]["content"][0]
        assert messages[2]["role"] == "user"
        assert result_block["type"] == "tool_result"
        assert result_block["tool_use_id"] == "toolu_42"
        assert json.loads(result_block["content"])["structure"]["hook"] == "My essay..."

    @pytest.mark.asyncio
    async def test_second_tool_request_is_not_executed(self, agent, anthropic_client):
        from writing_agents.specialist.orchestrator import FOLLOW_UP_FALLBACK

        anthropic_client.messages.create.side_effect = [
            _response(_tool_use("get_examples_by_topic", {"topic": "identity"})),
            _response(_tool_use("search_similar", {"query": "more"}, "toolu_02")),
        ]

        turn = await agent.run_turn("Show me identity essays")

        assert turn.answer == FOLLOW_UP_FALLBACK
        assert turn.model_calls == 2
        assert anthropic_client.messages.create.await_count == 2
        assert turn.invocation.name == "get_examples_by_topic"

    @pytest.mark.asyncio
    async def test_follow_up_text_after_tool_use(self, agent, anthropic_client):
        anthropic_client.messages.create.side_effect = [
            _response(_tool_use("get_examples_by_topic", {"topic": "identity"})),
            _response(_tool_use("search_similar", {"query": "x"}), _text("Final words.")),
        ]

        assert await agent.process_message("Examples please") == "Final words."


class TestFailures:
    """Failures surface as apologies, never exceptions"""

    @pytest.mark.asyncio
    async def test_unknown_tool(self, agent, anthropic_client):
        from writing_agents.specialist.orchestrator import TOOL_FAILURE_APOLOGY

        anthropic_client.messages.create.return_value = _response(_tool_use("rm_rf", {}))

        turn = await agent.run_turn("Do something")

        assert turn.answer == TOOL_FAILURE_APOLOGY
        assert turn.error.startswith("UnknownTool")
        assert anthropic_client.messages.create.await_count == 1

    @pytest.mark.asyncio
    async def test_invalid_arguments(self, agent, anthropic_client):
        from writing_agents.specialist.orchestrator import TOOL_FAILURE_APOLOGY

        anthropic_client.messages.create.return_value = _response(
            _tool_use("analyze_text", {"text": "x", "analysis_mode": "vibes"})
        )

        assert await agent.process_message("Analyze x") == TOOL_FAILURE_APOLOGY

    @pytest.mark.asyncio
    async def test_llm_failure(self, agent, anthropic_client):
        from writing_agents.specialist.orchestrator import ERROR_APOLOGY

        anthropic_client.messages.create.side_effect = ConnectionError("api unreachable")

        turn = await agent.run_turn("Hello")

        assert turn.answer == ERROR_APOLOGY
        assert "ConnectionError" in turn.error

    @pytest.mark.asyncio
    async def test_follow_up_failure(self, agent, anthropic_client):
        from writing_agents.specialist.orchestrator import ERROR_APOLOGY

        anthropic_client.messages.create.side_effect = [
            _response(_tool_use("get_examples_by_topic", {"topic": "identity"})),
            TimeoutError("slow"),
        ]

        assert await agent.process_message("Examples") == ERROR_APOLOGY

    @pytest.mark.asyncio
    async def test_unavailable_llm(self, encoder, store):
        from writing_agents.common.llm_client import LLMClient
        from writing_agents.specialist.orchestrator import ERROR_APOLOGY, WritingSpecialist

        agent = WritingSpecialist(LLMClient(), encoder, store)

        assert await agent.process_message("Hello") == ERROR_APOLOGY

    @pytest.mark.asyncio
    async def test_failure_is_logged(self, agent, anthropic_client, caplog):
        import logging

        anthropic_client.messages.create.side_effect = RuntimeError("boom")

        with caplog.at_level(logging.ERROR, logger="writing_agents.specialist.orchestrator"):
            await agent.process_message("Hello", "session-7")

        assert "session-7" in caplog.text

    def test_transition_table_allows_one_round_trip(self):
        from writing_agents.specialist.orchestrator import TRANSITIONS, TurnState

        assert TRANSITIONS[TurnState.AWAITING_FOLLOW_UP] == {TurnState.DONE}
        assert TurnState.TOOL_REQUESTED not in TRANSITIONS[TurnState.AWAITING_FOLLOW_UP]
        assert TurnState.DONE not in TRANSITIONS
