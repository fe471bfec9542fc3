import asyncio
import json

import httpx
import pytest

from oramacore_client.adapters.http.client import OramaClient
from oramacore_client.config.settings import settings
from oramacore_client.core.auth import ApiKeyAuth
from oramacore_client.core.errors import AuthenticationError, ConfigError
from oramacore_client.core.models import AnswerRequest, CreateAiSessionConfig, LlmConfig, LlmProvider, Message, Role
from oramacore_client.core.session import AiSession, create_session


def _session(handler, config: CreateAiSessionConfig | None = None) -> tuple[AiSession, httpx.AsyncClient]:
    async_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    client = OramaClient(ApiKeyAuth(api_key="k", reader_url="https://reader.example.com"), http_client=async_client)
    return AiSession("c1", client, config=config), async_client


def test_answer_fills_turn_from_response():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/v1/collections/c1/ai/answer"
        assert request.url.params["api-key"] == "k"
        return httpx.Response(
            200,
            json={
                "answer": "pong",
                "sources": [{"id": "doc-1"}],
                "related": '["what next?"]',
                "optimized_query": {"term": "ping", "datasourceIDs": ["ds-1"]},
            },
        )

    session, async_client = _session(handler)

    async def run_case():
        answer = await session.answer(AnswerRequest(query="ping"))
        await async_client.aclose()
        return answer

    assert asyncio.run(run_case()) == "pong"
    messages = session.get_messages()
    assert [(m.role, m.content) for m in messages] == [(Role.USER, "ping"), (Role.ASSISTANT, "pong")]
    interaction = session.get_state()[0]
    assert interaction.response == "pong"
    assert interaction.loading is False
    assert interaction.current_step == "completed"
    assert interaction.sources == [{"id": "doc-1"}]
    assert interaction.related == '["what next?"]'
    assert interaction.optimized_query.term == "ping"
    assert interaction.optimized_query.datasource_ids == ["ds-1"]


def test_answer_enriches_request():
    bodies: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={"answer": "ok"})

    llm = LlmConfig(provider=LlmProvider.OPENAI, model="gpt-4o-mini")
    session, async_client = _session(handler, CreateAiSessionConfig(llm_config=llm))

    async def run_case():
        await session.answer(AnswerRequest(query="first"))
        await session.answer(AnswerRequest(query="second", visitor_id="v-9", interaction_id="i-fixed"))
        await async_client.aclose()

    asyncio.run(run_case())
    first, second = bodies
    assert first["visitor_id"] == settings.default_visitor_id
    assert first["session_id"] == session.session_id
    assert first["interaction_id"]
    assert first["LLMConfig"] == {"provider": "openai", "model": "gpt-4o-mini"}
    assert second["visitor_id"] == "v-9"
    assert second["interaction_id"] == "i-fixed"
    assert first["interaction_id"] != second["interaction_id"]
    assert session.get_state()[1].id == "i-fixed"
    assert session.get_state()[0].selected_llm == llm


def test_answer_unauthorized_marks_interaction_errored():
    session, async_client = _session(lambda _request: httpx.Response(401, json={"message": "bad key"}))

    async def run_case():
        try:
            await session.answer(AnswerRequest(query="ping"))
        finally:
            await async_client.aclose()

    with pytest.raises(AuthenticationError):
        asyncio.run(run_case())

    interaction = session.get_state()[0]
    assert interaction.error is True
    assert interaction.loading is False
    assert interaction.error_message == "Unauthorized: are you using the correct API Key?"
    assert len(session.get_messages()) == 2


def test_answer_without_reader_url_fails_before_network():
    calls = []
    async_client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: calls.append(request)))
    session = AiSession("c1", OramaClient(ApiKeyAuth(api_key="k"), http_client=async_client))

    async def run_case():
        try:
            await session.answer(AnswerRequest(query="ping"))
        finally:
            await async_client.aclose()

    with pytest.raises(ConfigError):
        asyncio.run(run_case())
    assert calls == []
    assert session.get_state()[0].error is True


def test_initial_messages_and_clear_session():
    config = CreateAiSessionConfig(initial_messages=[Message(role=Role.SYSTEM, content="be brief")])
    session, _async_client = _session(lambda _request: httpx.Response(200, json={"answer": "x"}), config)
    assert [m.content for m in session.get_messages()] == ["be brief"]
    session_id = session.session_id

    session.clear_session()
    assert session.session_id == session_id
    assert session.get_messages() == []
    assert session.get_state() == []


def test_create_session_uses_settings_client(monkeypatch):
    monkeypatch.setattr(settings, "api_key", "from-settings")
    monkeypatch.setattr(settings, "reader_url", "https://settings-reader.example.com")
    session = create_session("c1")
    assert session.collection_id == "c1"
    assert session.client.auth.config.api_key == "from-settings"
    assert session.client.auth.config.reader_url == "https://settings-reader.example.com"
    assert session.session_id != create_session("c1").session_id
