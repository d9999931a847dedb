"""Hub-and-spoke orchestrator.

``decide`` applies the decision order to a conversation snapshot without any
I/O. ``handle_message`` runs that decision under the conversation's lock,
calls the completion gateway when the decision needs an AI answer, records
the turn, persists the conversation and only then publishes events.
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple

from switchboard.errors import ProviderError, ServiceUnavailable
from switchboard.logging_config import conversation_logger, get_logger
from switchboard.models.conversation import Conversation, HistoryRole
from switchboard.models.events import EventType, OutboundEvent
from switchboard.models.router_result import TRANSFER_ACTIONS, RouterAction, RouterResult
from switchboard.models.routing import DepartmentInfo, DepartmentOption, RoutingResult
from switchboard.services import messages
from switchboard.services.alert_service import alert_error
from switchboard.services.completion_gateway import CompletionGateway
from switchboard.services.conversation_locks import ConversationLocks
from switchboard.services.events import EventBus
from switchboard.services.flow_engine import FlowBuilderEngine, FlowOutcome
from switchboard.services.flow_state_store import FlowStateStore
from switchboard.services.intent_service import Intent, classify_intent
from switchboard.services.keyword_router import KeywordRouter
from switchboard.services.persona_registry import PersonaRegistry
from switchboard.services.result import Result

logger = get_logger("conversation_router")

TRANSFER_CONFIDENCE = 0.7
SUGGESTION_CONFIDENCE = 0.4
SPECIALIST_SWITCH_CONFIDENCE = 0.8
HISTORY_LIMIT = 20

# Float sums such as 0.35 + 0.35 must still reach an inclusive threshold.
THRESHOLD_TOLERANCE = 1e-9

HUB_INSTRUCTIONS = (
    "You are {name}, the main Lightwave assistant at the central hub. Your role is to:\n"
    "1. Help customers with general questions\n"
    "2. Identify when they need specialist help and offer to connect them\n"
    "3. Be friendly and professional\n"
    "4. Always be ready to route to: {specialists} specialists"
)
SPECIALIST_INSTRUCTIONS = (
    "You are {name}, a {role} at Lightwave. You were transferred this customer from our general chat.\n"
    "Your capabilities: {capabilities}\n"
    "Style: {style}\n"
    "Always be ready to suggest connecting with other specialists if the question is outside your expertise."
)


@dataclass
class RoutingDecision:
    action: RouterAction
    department: str  # department that answers (target of a transfer)
    routing: Optional[RoutingResult] = None
    options: Optional[List[DepartmentOption]] = None
    selected: Optional[DepartmentInfo] = None

    @property
    def needs_completion(self) -> bool:
        return self.action in {RouterAction.HUB_REPLY, RouterAction.HUB_SUGGESTIONS, RouterAction.SPECIALIST_REPLY}


class ConversationRouter:
    def __init__(
        self,
        store: FlowStateStore,
        personas: PersonaRegistry,
        keyword_router: KeywordRouter,
        gateway: CompletionGateway,
        *,
        flow_engine: Optional[FlowBuilderEngine] = None,
        locks: Optional[ConversationLocks] = None,
        events: Optional[EventBus] = None,
        transfer_confidence: float = TRANSFER_CONFIDENCE,
        suggestion_confidence: float = SUGGESTION_CONFIDENCE,
        specialist_switch_confidence: float = SPECIALIST_SWITCH_CONFIDENCE,
        history_limit: int = HISTORY_LIMIT,
    ):
        self.store = store
        self.personas = personas
        self.keyword_router = keyword_router
        self.gateway = gateway
        self.flow_engine = flow_engine
        self.locks = locks if locks is not None else ConversationLocks()
        self.events = events if events is not None else EventBus()
        self.transfer_confidence = transfer_confidence
        self.suggestion_confidence = suggestion_confidence
        self.specialist_switch_confidence = specialist_switch_confidence
        self.history_limit = history_limit

    @property
    def hub_department(self) -> str:
        return self.personas.main_router().department

    # Decision

    def decide(self, conversation: Conversation, text: str) -> RoutingDecision:
        """Pick the action for ``text`` without side effects. First match wins."""
        hub = self.hub_department
        current = conversation.department if self.personas.get(conversation.department) else hub

        intent = classify_intent(text)
        if intent == Intent.HUMAN_REQUEST:
            return RoutingDecision(RouterAction.HUMAN_HANDOFF, current)
        if self.flow_engine is not None and self.flow_engine.is_driving(conversation):
            return RoutingDecision(RouterAction.FLOW, current)
        if not self.gateway.is_ready():
            return RoutingDecision(RouterAction.FALLBACK, current)

        routing = self.keyword_router.route(text, current, hub_department=hub)
        if current == hub:
            decision = self._decide_at_hub(routing, hub)
        else:
            decision = self._decide_at_specialist(intent, routing, current, hub)

        if conversation.awaiting_selection and decision.action not in TRANSFER_ACTIONS:
            selected = self.keyword_router.find_department(text, self._selectable(hub))
            if selected is not None:
                return RoutingDecision(RouterAction.SELECTION_TRANSFER, selected.id, routing, selected=selected)
            return RoutingDecision(RouterAction.SELECTION_PROMPT, current, routing, options=self._department_options(hub))
        return decision

    def _decide_at_hub(self, routing: RoutingResult, hub: str) -> RoutingDecision:
        if (
            routing.department != hub
            and self.personas.get(routing.department) is not None
            and routing.confidence >= self.transfer_confidence - THRESHOLD_TOLERANCE
        ):
            return RoutingDecision(RouterAction.TRANSFER, routing.department, routing)
        if routing.suggestions and routing.confidence > self.suggestion_confidence:
            return RoutingDecision(RouterAction.HUB_SUGGESTIONS, hub, routing, options=self._department_options(hub))
        return RoutingDecision(RouterAction.HUB_REPLY, hub, routing)

    def _decide_at_specialist(self, intent: Intent, routing: RoutingResult, current: str, hub: str) -> RoutingDecision:
        if intent == Intent.RETURN_TO_HUB:
            return RoutingDecision(RouterAction.TRANSFER_BACK, hub, routing)
        if (
            routing.department not in (current, hub)
            and self.personas.get(routing.department) is not None
            and routing.confidence > self.specialist_switch_confidence
        ):
            return RoutingDecision(RouterAction.SPECIALIST_SWITCH, routing.department, routing)
        return RoutingDecision(RouterAction.SPECIALIST_REPLY, current, routing)

    def _selectable(self, hub: str) -> List[DepartmentInfo]:
        return [department for department in self.keyword_router.specialists(hub) if self.personas.get(department.id)]

    def _department_options(self, hub: str) -> List[DepartmentOption]:
        return [
            DepartmentOption(
                id=department.id,
                name=department.name,
                description=department.description,
                specialist=self.personas.get(department.id).name,
            )
            for department in self._selectable(hub)
        ]

    # Inbound operations

    async def handle_message(self, conversation_id: str, text: str, customer_name: Optional[str] = None) -> RouterResult:
        """Route one customer message. Never raises; failures become a human-agent response."""
        provider_failure = None
        async with self.locks.hold(conversation_id):
            try:
                result, provider_failure = await self._handle_locked(conversation_id, text, customer_name)
            except Exception as e:
                logger.error(
                    f"Message handling failed: {e}",
                    exc_info=True,
                    extra={"context": {"conversation_id": conversation_id}},
                )
                result = RouterResult(
                    conversation_id=conversation_id,
                    action=RouterAction.FALLBACK,
                    response_text=messages.TECHNICAL_DIFFICULTIES,
                    messages=[messages.TECHNICAL_DIFFICULTIES],
                    department=self.hub_department,
                    needs_human_agent=True,
                )

        self.events.publish(result.events)
        if provider_failure:
            await alert_error(
                "Completion provider failed",
                {"conversation_id": conversation_id, "error": provider_failure},
            )
        return result

    async def _handle_locked(
        self, conversation_id: str, text: str, customer_name: Optional[str]
    ) -> Tuple[RouterResult, Optional[str]]:
        log = conversation_logger(logger, conversation_id)
        events: List[OutboundEvent] = []

        conversation = self.store.get(conversation_id)
        if conversation is None:
            # Customer identity is not known here, so reconnects cannot resume this conversation.
            log.error("Message for unknown conversation, starting a new one at the hub keyed by conversation id")
            conversation = Conversation(
                id=conversation_id,
                customer_id=conversation_id,
                customer_name=customer_name,
                department=self.hub_department,
            )
            events.append(self._event(EventType.CONVERSATION_CREATED, conversation, department=conversation.department))
        if customer_name:
            conversation.customer_name = customer_name

        text = (text or "").strip()
        if not text:
            if self.gateway.is_ready():
                return self._result(conversation, RouterAction.IGNORED, messages.EMPTY_MESSAGE), None
            result = self._unavailable(conversation)
            self.store.put(conversation.id, conversation)
            result.events = events + result.events
            return result, None

        if self.personas.get(conversation.department) is None:
            log.warning(f"Department {conversation.department!r} has no persona, returning to hub")
            conversation.department = self.hub_department

        decision = self.decide(conversation, text)
        log.info(f"Decision: {decision.action.value} -> {decision.department}")

        provider_failure = None
        if decision.action == RouterAction.FLOW:
            result = self._flow_result(conversation, self.flow_engine.prompt_for(conversation))
        elif decision.needs_completion:
            result, provider_failure = await self._complete(conversation, text, decision)
        else:
            result = self._respond(conversation, decision)

        conversation.record_turn(text, result.response_text, self.history_limit)
        conversation.touch()
        self.store.put(conversation.id, conversation)

        result.events = events + result.events
        return result, provider_failure

    async def open_conversation(self, conversation_id: str) -> RouterResult:
        """Opening message for a fresh session: the flow entry when a script is active, else the hub greeting."""
        async with self.locks.hold(conversation_id):
            conversation = self.store.get(conversation_id)
            if conversation is None:
                return RouterResult(conversation_id=conversation_id, action=RouterAction.IGNORED, department=self.hub_department)

            if self.flow_engine is not None and self.flow_engine.enabled:
                result = self._flow_result(conversation, self.flow_engine.start(conversation))
            elif not self.gateway.is_ready():
                result = self._unavailable(conversation)
            else:
                greeting = self.personas.greeting_for(self.hub_department, conversation.customer_name)
                requested = self.personas.get(conversation.requested_department or "")
                if requested is not None and requested.department != self.hub_department:
                    greeting += messages.REQUESTED_DEPARTMENT.format(role=requested.role)
                result = self._result(conversation, RouterAction.HUB_REPLY, greeting)

            for text in result.messages:
                conversation.append_history(HistoryRole.ASSISTANT, text, self.history_limit)
            conversation.touch()
            self.store.put(conversation.id, conversation)

        self.events.publish(result.events)
        return result

    async def select_choice(self, conversation_id: str, step_id: str, value: str) -> RouterResult:
        """Apply a flow-builder option; stale or broken selections leave the conversation untouched."""
        async with self.locks.hold(conversation_id):
            conversation = self.store.get(conversation_id)
            if conversation is None or self.flow_engine is None:
                return self._ignored(conversation_id)

            step = self.flow_engine.script.step(step_id) if self.flow_engine.script else None
            option = step.option(value) if step else None
            outcome = self.flow_engine.select_choice(conversation, step_id, value)
            if not outcome.ok:
                return self._ignored(conversation_id, conversation.department)

            result = self._flow_result(conversation, outcome)
            self._record_flow_turn(conversation, option.text if option else value, result)

        self.events.publish(result.events)
        return result

    async def submit_rating(self, conversation_id: str, step_id: str, score: int) -> RouterResult:
        async with self.locks.hold(conversation_id):
            conversation = self.store.get(conversation_id)
            if conversation is None or self.flow_engine is None:
                return self._ignored(conversation_id)

            outcome = self.flow_engine.submit_rating(conversation, step_id, score)
            if not outcome.ok:
                return self._ignored(conversation_id, conversation.department)

            result = self._flow_result(conversation, outcome)
            self._record_flow_turn(conversation, str(score), result)

        self.events.publish(result.events)
        return result

    # Responses

    def _respond(self, conversation: Conversation, decision: RoutingDecision) -> RouterResult:
        name = conversation.customer_name or "there"
        action = decision.action

        if action == RouterAction.HUMAN_HANDOFF:
            info = self.keyword_router.department(conversation.department)
            department_name = info.name if info else conversation.department.title()
            conversation.needs_human_agent = True
            result = self._result(
                conversation,
                action,
                messages.HUMAN_HANDOFF.format(department=department_name),
                needs_human_agent=True,
            )
            result.events.append(
                self._event(
                    EventType.HUMAN_AGENT_NEEDED,
                    conversation,
                    department=conversation.department,
                    reason="customer_request",
                )
            )
            return result

        if action == RouterAction.FALLBACK:
            return self._unavailable(conversation)

        if action == RouterAction.SELECTION_PROMPT:
            menu = messages.department_menu(decision.options or [])
            return self._result(
                conversation,
                action,
                messages.SELECTION_REPROMPT.format(menu=menu),
                department_options=decision.options,
            )

        target = self.personas.get(decision.department)
        if action == RouterAction.TRANSFER:
            text = messages.TRANSFER.format(department=target.department, role=target.role, greeting=target.greeting)
        elif action == RouterAction.SPECIALIST_SWITCH:
            text = messages.SPECIALIST_SWITCH.format(department=target.department, role=target.role, greeting=target.greeting)
        elif action == RouterAction.TRANSFER_BACK:
            greeting = self.personas.greeting_for(target.department, name, salutation="Welcome back")
            text = messages.TRANSFER_BACK.format(greeting=greeting)
        else:
            text = messages.SELECTION_TRANSFER.format(name=decision.selected.name, greeting=target.greeting)

        return self._transfer(conversation, decision, text)

    def _transfer(self, conversation: Conversation, decision: RoutingDecision, text: str) -> RouterResult:
        previous = conversation.department
        reason = decision.action.value
        if decision.action in (RouterAction.TRANSFER, RouterAction.SPECIALIST_SWITCH) and decision.routing.reasons:
            reason = "; ".join(decision.routing.reasons)
        conversation.transfer_to(decision.department, reason)

        result = self._result(conversation, decision.action, text, transferred=True)
        result.events.append(
            self._event(
                EventType.DEPARTMENT_TRANSFERRED,
                conversation,
                from_department=previous,
                to_department=decision.department,
                reason=reason,
            )
        )
        return result

    async def _complete(
        self, conversation: Conversation, text: str, decision: RoutingDecision
    ) -> Tuple[RouterResult, Optional[str]]:
        try:
            completion = await self.gateway.complete(
                text,
                decision.department,
                conversation.history,
                {"instructions": self._instructions(decision)},
            )
        except ServiceUnavailable:
            return self._unavailable(conversation), None
        except ProviderError as e:
            logger.error(f"Completion failed: {e}", extra={"context": {"conversation_id": conversation.id}})
            return self._difficulties(conversation), str(e)
        except Exception as e:
            logger.error(
                f"Unexpected completion failure: {e}",
                exc_info=True,
                extra={"context": {"conversation_id": conversation.id}},
            )
            return self._difficulties(conversation), str(e)

        if decision.action == RouterAction.HUB_SUGGESTIONS:
            conversation.awaiting_selection = True
            return self._result(conversation, decision.action, completion.text, department_options=decision.options), None
        return self._result(conversation, decision.action, completion.text), None

    def _instructions(self, decision: RoutingDecision) -> str:
        persona = self.personas.get(decision.department)
        if decision.action == RouterAction.SPECIALIST_REPLY:
            return SPECIALIST_INSTRUCTIONS.format(
                name=persona.name,
                role=persona.role,
                capabilities=", ".join(sorted(persona.capabilities)),
                style=persona.style,
            )

        specialists = [department.id.title() for department in self._selectable(persona.department)]
        instructions = HUB_INSTRUCTIONS.format(name=persona.name, specialists=", ".join(specialists))
        if decision.routing and decision.routing.reasons:
            instructions += f"\nCurrent routing hints: {', '.join(decision.routing.reasons)}"
        return instructions

    def _unavailable(self, conversation: Conversation) -> RouterResult:
        return self._human_fallback(conversation, messages.AI_UNAVAILABLE, "ai_unavailable")

    def _difficulties(self, conversation: Conversation) -> RouterResult:
        return self._human_fallback(conversation, messages.TECHNICAL_DIFFICULTIES, "provider_error")

    def _human_fallback(self, conversation: Conversation, text: str, reason: str) -> RouterResult:
        conversation.needs_human_agent = True
        result = self._result(conversation, RouterAction.FALLBACK, text, needs_human_agent=True)
        result.events.append(
            self._event(EventType.HUMAN_AGENT_NEEDED, conversation, department=conversation.department, reason=reason)
        )
        return result

    def _flow_result(self, conversation: Conversation, outcome: Result[FlowOutcome]) -> RouterResult:
        if not outcome.ok:
            return self._result(conversation, RouterAction.FLOW, messages.FLOW_USE_OPTIONS)

        flow = outcome.value
        action = RouterAction.TRANSFER if flow.transferred else RouterAction.FLOW
        result = self._result(
            conversation,
            action,
            flow.text,
            needs_human_agent=flow.needs_human_agent or not self.gateway.is_ready(),
            transferred=flow.transferred,
            choices=flow.choices,
            rating=flow.rating,
        )
        result.messages = [message for message in flow.messages if message]
        result.events = list(flow.events)
        return result

    def _record_flow_turn(self, conversation: Conversation, user_text: str, result: RouterResult) -> None:
        conversation.append_history(HistoryRole.USER, user_text, self.history_limit)
        if result.response_text:
            conversation.append_history(HistoryRole.ASSISTANT, result.response_text, self.history_limit)
        conversation.touch()
        self.store.put(conversation.id, conversation)

    def _result(self, conversation: Conversation, action: RouterAction, text: str, **fields) -> RouterResult:
        return RouterResult(
            conversation_id=conversation.id,
            action=action,
            response_text=text,
            messages=[text] if text else [],
            department=conversation.department,
            specialist_active=conversation.department != self.hub_department,
            **fields,
        )

    def _ignored(self, conversation_id: str, department: Optional[str] = None) -> RouterResult:
        return RouterResult(
            conversation_id=conversation_id,
            action=RouterAction.IGNORED,
            department=department or self.hub_department,
        )

    @staticmethod
    def _event(event_type: EventType, conversation: Conversation, **payload) -> OutboundEvent:
        return OutboundEvent(type=event_type, conversation_id=conversation.id, payload=payload)
