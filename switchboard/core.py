"""Wiring of the routing core from Settings."""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from switchboard.config import Settings, settings
from switchboard.errors import ConfigurationError
from switchboard.logging_config import get_logger
from switchboard.models.flow import FlowScript
from switchboard.services.completion_gateway import CompletionGateway
from switchboard.services.conversation_locks import ConversationLocks
from switchboard.services.conversation_router import ConversationRouter
from switchboard.services.events import EventBus
from switchboard.services.flow_engine import FlowBuilderEngine
from switchboard.services.flow_state_store import FlowStateStore, InMemoryFlowStateStore, RedisFlowStateStore
from switchboard.services.keyword_router import KeywordRouter
from switchboard.services.knowledge import InMemoryKnowledgeBase
from switchboard.services.llm import OpenAIProvider
from switchboard.services.persona_registry import PersonaRegistry
from switchboard.services.session_lifecycle import SessionLifecycle

logger = get_logger("core")


@dataclass
class Core:
    store: FlowStateStore
    personas: PersonaRegistry
    keyword_router: KeywordRouter
    gateway: CompletionGateway
    flow_engine: FlowBuilderEngine
    locks: ConversationLocks
    events: EventBus
    router: ConversationRouter
    sessions: SessionLifecycle


def load_flow_script(path) -> FlowScript:
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise ConfigurationError(f"Cannot read flow script {path}: {e}") from e
    return FlowScript.from_config(data)


def build_store(config: Settings) -> FlowStateStore:
    if config.state_backend == "memory":
        return InMemoryFlowStateStore()
    if config.state_backend == "redis":
        return RedisFlowStateStore.from_url(config.redis_url, prefix=config.state_key_prefix)
    raise ConfigurationError(f"Unknown state backend {config.state_backend!r}")


def build_core(config: Settings = settings, store: Optional[FlowStateStore] = None, provider=None) -> Core:
    """Assemble the routing core. ``store`` and ``provider`` override the configured backends."""
    personas = PersonaRegistry()
    if config.personas_file:
        personas.load_file(config.personas_file)

    if provider is None:
        provider = OpenAIProvider(
            config.openai_api_key,
            default_model=config.llm_model,
            base_url=config.llm_base_url,
            timeout_seconds=config.llm_timeout_seconds,
        )
    if not provider.is_ready():
        logger.warning("Completion provider not configured, every AI turn will go to a human agent")

    knowledge = InMemoryKnowledgeBase.from_file(config.knowledge_file) if config.knowledge_file else None
    gateway = CompletionGateway(
        provider,
        personas,
        knowledge,
        history_window=config.prompt_history_window,
        timeout_seconds=config.llm_timeout_seconds,
        max_tokens=config.llm_max_tokens,
        temperature=config.llm_temperature,
        model=config.llm_model,
    )
    keyword_router = KeywordRouter(
        hub_department=personas.main_router().department,
        suggestion_cutoff=config.transfer_confidence,
    )
    script = load_flow_script(config.flow_script_file) if config.flow_script_file else None
    flow_engine = FlowBuilderEngine(script, gateway, personas, max_auto_advance=config.flow_max_auto_advance)

    if store is None:
        store = build_store(config)
    locks = ConversationLocks()
    events = EventBus()
    router = ConversationRouter(
        store,
        personas,
        keyword_router,
        gateway,
        flow_engine=flow_engine,
        locks=locks,
        events=events,
        transfer_confidence=config.transfer_confidence,
        suggestion_confidence=config.suggestion_confidence,
        specialist_switch_confidence=config.specialist_switch_confidence,
        history_limit=config.history_limit,
    )
    sessions = SessionLifecycle(store, personas, locks, events, idle_hours=config.session_idle_hours)

    return Core(
        store=store,
        personas=personas,
        keyword_router=keyword_router,
        gateway=gateway,
        flow_engine=flow_engine,
        locks=locks,
        events=events,
        router=router,
        sessions=sessions,
    )


_core: Optional[Core] = None


def get_core() -> Core:
    """FastAPI dependency returning the process-wide core."""
    global _core
    if _core is None:
        _core = build_core()
    return _core
