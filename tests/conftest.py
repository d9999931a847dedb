import asyncio
import copy
from typing import Optional
from unittest.mock import AsyncMock, patch

import pytest

from switchboard.errors import ProviderError
from switchboard.models.flow import FlowScript
from switchboard.services.completion_gateway import CompletionGateway
from switchboard.services.conversation_locks import ConversationLocks
from switchboard.services.conversation_router import ConversationRouter
from switchboard.services.events import EventBus
from switchboard.services.flow_engine import FlowBuilderEngine
from switchboard.services.flow_state_store import InMemoryFlowStateStore
from switchboard.services.keyword_router import KeywordRouter
from switchboard.services.llm.base import CompletionRequest, LLMProvider, LLMResponse
from switchboard.services.persona_registry import PersonaRegistry
from switchboard.services.session_lifecycle import SessionLifecycle


class FakeProvider(LLMProvider):
    """Scriptable provider that records every request."""

    def __init__(self, reply: str = "Happy to help!", ready: bool = True):
        self.reply = reply
        self.ready = ready
        self.error: Optional[Exception] = None
        self.delay = 0.0
        self.requests: list[CompletionRequest] = []

    def is_ready(self) -> bool:
        return self.ready

    async def generate(self, request: CompletionRequest) -> LLMResponse:
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return LLMResponse(content=self.reply, model="fake-model", usage={"total_tokens": 42})


SAMPLE_SCRIPT = {
    "enabled": True,
    "entryStep": "welcome",
    "steps": [
        {"id": "welcome", "type": "message", "content": "Welcome to Lightwave!", "nextStep": "menu"},
        {
            "id": "menu",
            "type": "choice",
            "content": "How can we help?",
            "options": [
                {"text": "Talk to sales", "value": "sales", "nextStep": "handoff"},
                {"text": "Talk to a person", "value": "technical", "nextStep": "queue"},
                {"text": "Rate us", "value": "rate", "nextStep": "csat"},
                {"text": "Nothing", "value": "none", "nextStep": ""},
            ],
        },
        {"id": "handoff", "type": "ai_handoff", "content": "Connecting you to our AI assistant..."},
        {"id": "queue", "type": "agent_queue", "content": "Please hold for an agent."},
        {"id": "csat", "type": "rating", "content": "How did we do?"},
    ],
}


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def personas():
    return PersonaRegistry()


@pytest.fixture
def keyword_router():
    return KeywordRouter()


@pytest.fixture
def store():
    return InMemoryFlowStateStore()


@pytest.fixture
def gateway(provider, personas):
    return CompletionGateway(provider, personas, timeout_seconds=1.0)


@pytest.fixture
def locks():
    return ConversationLocks()


@pytest.fixture
def event_bus():
    return EventBus()


@pytest.fixture
def published(event_bus):
    """Events delivered to transport listeners, in publish order."""
    received = []
    event_bus.subscribe(received.append)
    return received


@pytest.fixture
def flow_script():
    return FlowScript.from_config(SAMPLE_SCRIPT)


@pytest.fixture
def flow_engine(flow_script, gateway, personas):
    return FlowBuilderEngine(flow_script, gateway, personas)


@pytest.fixture
def router(store, personas, keyword_router, gateway, locks, event_bus):
    return ConversationRouter(store, personas, keyword_router, gateway, locks=locks, events=event_bus)


@pytest.fixture
def flow_router(store, personas, keyword_router, gateway, flow_engine, locks, event_bus):
    return ConversationRouter(
        store,
        personas,
        keyword_router,
        gateway,
        flow_engine=flow_engine,
        locks=locks,
        events=event_bus,
    )


@pytest.fixture
def sessions(store, personas, locks, event_bus):
    return SessionLifecycle(store, personas, locks, event_bus)


@pytest.fixture(autouse=True)
def mock_alerts():
    with patch("switchboard.services.conversation_router.alert_error", new_callable=AsyncMock) as mocked:
        yield mocked


@pytest.fixture
def failing_provider(provider):
    provider.error = ProviderError("OpenAI API error: 500 - boom", status_code=500)
    return provider


@pytest.fixture
def make_provider():
    return FakeProvider


@pytest.fixture
def sample_script():
    """Mutable copy of the sample script config."""
    return copy.deepcopy(SAMPLE_SCRIPT)
