from switchboard.services.completion_gateway import CompletionGateway, CompletionResult
from switchboard.services.conversation_locks import ConversationLocks
from switchboard.services.conversation_router import ConversationRouter, RoutingDecision
from switchboard.services.events import EventBus
from switchboard.services.flow_engine import FlowBuilderEngine, FlowOutcome
from switchboard.services.flow_state_store import FlowStateStore, InMemoryFlowStateStore, RedisFlowStateStore
from switchboard.services.keyword_router import KeywordRouter
from switchboard.services.persona_registry import PersonaRegistry
from switchboard.services.result import Result
from switchboard.services.session_lifecycle import SessionLifecycle
