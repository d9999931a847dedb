"""Flow-builder step machine.

The conversation's ``step`` field is the machine state. ``message`` steps
auto-advance, ``choice``, ``agent_queue`` and ``rating`` halt, and
``ai_handoff`` leaves the flow for free-form AI routing. The engine only
mutates the Conversation it is given; persisting it and publishing the
outcome's events is the caller's job.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from switchboard.errors import InvalidTransition, ServiceUnavailable, UnknownStepReference
from switchboard.logging_config import get_logger
from switchboard.models.conversation import CONVERSATION_STEP, Conversation
from switchboard.models.events import EventType, OutboundEvent
from switchboard.models.flow import FlowScript, FlowStep, StepType
from switchboard.models.router_result import ChoicePrompt, RatingPrompt
from switchboard.services import messages
from switchboard.services.completion_gateway import CompletionGateway
from switchboard.services.persona_registry import PersonaRegistry
from switchboard.services.result import (
    FLOW_DISABLED,
    INVALID_RATING,
    INVALID_TRANSITION,
    UNKNOWN_STEP,
    Result,
)

logger = get_logger("flow_engine")

MAX_AUTO_ADVANCE = 20


@dataclass
class FlowOutcome:
    messages: List[str] = field(default_factory=list)
    choices: Optional[ChoicePrompt] = None
    rating: Optional[RatingPrompt] = None
    events: List[OutboundEvent] = field(default_factory=list)
    department: Optional[str] = None
    transferred: bool = False
    needs_human_agent: bool = False
    finished: bool = False  # flow no longer drives the conversation
    parked: bool = False  # auto-advance bound reached

    @property
    def text(self) -> str:
        return "\n\n".join(message for message in self.messages if message)


class FlowBuilderEngine:
    def __init__(
        self,
        script: Optional[FlowScript],
        gateway: CompletionGateway,
        personas: PersonaRegistry,
        *,
        max_auto_advance: int = MAX_AUTO_ADVANCE,
    ):
        self._script = script
        self.gateway = gateway
        self.personas = personas
        self.max_auto_advance = max_auto_advance

    @property
    def script(self) -> Optional[FlowScript]:
        return self._script

    @property
    def enabled(self) -> bool:
        return self._script is not None and self._script.enabled and bool(self._script.steps)

    def set_script(self, script: Optional[FlowScript]) -> None:
        """Swap the active script. Conversations parked on removed steps fall back to AI routing."""
        self._script = script
        logger.info(f"Flow script replaced: enabled={self.enabled}")

    def is_driving(self, conversation: Conversation) -> bool:
        if not self.enabled or conversation.step == CONVERSATION_STEP:
            return False
        return self._script.step(conversation.step) is not None

    def start(self, conversation: Conversation) -> Result[FlowOutcome]:
        if not self.enabled:
            return Result.failure("Flow builder disabled", FLOW_DISABLED)
        entry = self._script.entry()
        outcome = FlowOutcome(department=conversation.department)
        self._run(conversation, entry, outcome)
        return Result.success(outcome)

    def resume(self, conversation: Conversation) -> Result[FlowOutcome]:
        """Continue a conversation parked on a step (after the auto-advance bound, or on reconnect)."""
        if not self.is_driving(conversation):
            return Result.failure("Conversation is not in a flow", FLOW_DISABLED)
        outcome = FlowOutcome(department=conversation.department)
        self._run(conversation, self._script.step(conversation.step), outcome)
        return Result.success(outcome)

    def prompt_for(self, conversation: Conversation) -> Result[FlowOutcome]:
        """Answer free text typed while the flow waits on a choice or rating."""
        if not self.is_driving(conversation):
            return Result.failure("Conversation is not in a flow", FLOW_DISABLED)

        step = self._script.step(conversation.step)
        if step.type == StepType.CHOICE:
            outcome = FlowOutcome(department=conversation.department, messages=[messages.FLOW_USE_OPTIONS])
            outcome.choices = ChoicePrompt(step_id=step.id, content=step.content, options=step.options)
            return Result.success(outcome)
        if step.type == StepType.RATING:
            outcome = FlowOutcome(department=conversation.department, messages=[messages.FLOW_USE_OPTIONS])
            outcome.rating = self._rating_prompt(step)
            return Result.success(outcome)
        if step.type == StepType.AGENT_QUEUE:
            return Result.success(
                FlowOutcome(
                    department=conversation.department,
                    messages=[step.content or messages.FLOW_AGENT_QUEUE],
                    needs_human_agent=True,
                )
            )
        return self.resume(conversation)

    def select_choice(self, conversation: Conversation, step_id: str, value: str) -> Result[FlowOutcome]:
        if not self.enabled:
            return Result.failure("Flow builder disabled", FLOW_DISABLED)

        step = self._script.step(step_id)
        if conversation.step != step_id or step is None or step.type != StepType.CHOICE:
            error = InvalidTransition(conversation.step, step_id)
            logger.info(f"Ignoring stale choice: {error}", extra={"context": {"conversation_id": conversation.id}})
            return Result.failure(str(error), INVALID_TRANSITION)

        option = step.option(value)
        if option is None:
            logger.info(
                f"Ignoring unknown option {value!r} for step {step_id!r}",
                extra={"context": {"conversation_id": conversation.id}},
            )
            return Result.failure(f"Unknown option {value!r}", INVALID_TRANSITION)

        if not option.next_step:
            conversation.flow_selection = value
            conversation.step = CONVERSATION_STEP
            return Result.success(FlowOutcome(department=conversation.department, finished=True))

        next_step = self._script.step(option.next_step)
        if next_step is None:
            error = UnknownStepReference(option.next_step)
            logger.warning(
                f"{error} (option {value!r} of step {step_id!r})",
                extra={"context": {"conversation_id": conversation.id}},
            )
            return Result.failure(str(error), UNKNOWN_STEP)

        conversation.flow_selection = value
        outcome = FlowOutcome(department=conversation.department)
        self._run(conversation, next_step, outcome)
        return Result.success(outcome)

    def submit_rating(self, conversation: Conversation, step_id: str, score: int) -> Result[FlowOutcome]:
        if not self.enabled:
            return Result.failure("Flow builder disabled", FLOW_DISABLED)

        step = self._script.step(step_id)
        if conversation.step != step_id or step is None or step.type != StepType.RATING:
            error = InvalidTransition(conversation.step, step_id)
            logger.info(f"Ignoring stale rating: {error}", extra={"context": {"conversation_id": conversation.id}})
            return Result.failure(str(error), INVALID_TRANSITION)

        scale = self._script.rating_scale
        if not 1 <= score <= scale:
            return Result.failure(f"Rating must be between 1 and {scale}", INVALID_RATING)

        if step.next_step and self._script.step(step.next_step) is None:
            error = UnknownStepReference(step.next_step)
            logger.warning(
                f"{error} (after rating step {step_id!r})",
                extra={"context": {"conversation_id": conversation.id}},
            )
            return Result.failure(str(error), UNKNOWN_STEP)

        conversation.rating = score
        outcome = FlowOutcome(department=conversation.department, messages=[messages.FLOW_RATING_THANKS])
        if step.next_step:
            self._run(conversation, self._script.step(step.next_step), outcome)
        else:
            conversation.step = CONVERSATION_STEP
            outcome.finished = True
        return Result.success(outcome)

    def _run(self, conversation: Conversation, step: Optional[FlowStep], outcome: FlowOutcome) -> None:
        """Execute ``step`` and any message steps it chains into, up to the auto-advance bound."""
        advanced = 0
        while step is not None:
            conversation.step = step.id

            if step.type != StepType.MESSAGE:
                self._halt(conversation, step, outcome)
                return

            if step.content:
                outcome.messages.append(step.content)
            if not step.next_step:
                conversation.step = CONVERSATION_STEP
                outcome.finished = True
                return

            next_step = self._script.step(step.next_step)
            if next_step is None:
                logger.warning(
                    f"{UnknownStepReference(step.next_step)} (from message step {step.id!r})",
                    extra={"context": {"conversation_id": conversation.id}},
                )
                conversation.step = CONVERSATION_STEP
                outcome.finished = True
                return

            advanced += 1
            if advanced >= self.max_auto_advance:
                conversation.step = next_step.id
                outcome.parked = True
                logger.warning(
                    f"Auto-advance bound reached, parking on {next_step.id!r}",
                    extra={"context": {"conversation_id": conversation.id}},
                )
                return
            step = next_step

        if step is None:
            conversation.step = CONVERSATION_STEP
            outcome.finished = True

    def _halt(self, conversation: Conversation, step: FlowStep, outcome: FlowOutcome) -> None:
        if step.type == StepType.CHOICE:
            if step.content:
                outcome.messages.append(step.content)
            outcome.choices = ChoicePrompt(step_id=step.id, content=step.content, options=step.options)
            outcome.events.append(
                self._event(
                    EventType.FLOW_CHOICE_OFFERED,
                    conversation,
                    step_id=step.id,
                    options=[option.model_dump() for option in step.options],
                )
            )
        elif step.type == StepType.AGENT_QUEUE:
            outcome.messages.append(step.content or messages.FLOW_AGENT_QUEUE)
            conversation.needs_human_agent = True
            outcome.needs_human_agent = True
            department = self._bound_department(conversation, step) or conversation.department
            outcome.events.append(
                self._event(
                    EventType.CUSTOMER_WAITING,
                    conversation,
                    step_id=step.id,
                    department=department,
                    customer_id=conversation.customer_id,
                )
            )
        elif step.type == StepType.RATING:
            outcome.messages.append(step.content or messages.FLOW_RATING)
            outcome.rating = self._rating_prompt(step)
            outcome.events.append(
                self._event(
                    EventType.RATING_REQUESTED,
                    conversation,
                    step_id=step.id,
                    scale=outcome.rating.scale,
                    question=outcome.rating.question,
                )
            )
        elif step.type == StepType.AI_HANDOFF:
            self._handoff(conversation, step, outcome)

    def _handoff(self, conversation: Conversation, step: FlowStep, outcome: FlowOutcome) -> None:
        outcome.messages.append(step.content or messages.FLOW_AI_HANDOFF)
        conversation.step = CONVERSATION_STEP
        outcome.finished = True

        try:
            persona = self.gateway.init_persona(self._handoff_department(conversation, step))
        except ServiceUnavailable:
            logger.warning("AI handoff requested but completion service is not configured")
            outcome.messages.append(messages.AI_UNAVAILABLE)
            conversation.needs_human_agent = True
            outcome.needs_human_agent = True
            outcome.events.append(
                self._event(
                    EventType.HUMAN_AGENT_NEEDED,
                    conversation,
                    department=conversation.department,
                    reason="ai_unavailable",
                )
            )
            return

        if persona.department != conversation.department:
            previous = conversation.department
            conversation.transfer_to(persona.department, "flow_handoff")
            outcome.transferred = True
            outcome.events.append(
                self._event(
                    EventType.DEPARTMENT_TRANSFERRED,
                    conversation,
                    from_department=previous,
                    to_department=persona.department,
                    reason="flow_handoff",
                )
            )
        outcome.department = persona.department
        outcome.messages.append(self.personas.greeting_for(persona.department, conversation.customer_name))

    def _handoff_department(self, conversation: Conversation, step: FlowStep) -> str:
        return self._bound_department(conversation, step) or self.personas.main_router().department

    def _bound_department(self, conversation: Conversation, step: FlowStep) -> Optional[str]:
        """The step's department, else the last selected option, when either names a persona."""
        for candidate in (step.department, conversation.flow_selection):
            if candidate and self.personas.get(candidate) is not None:
                return candidate
        return None

    def _rating_prompt(self, step: FlowStep) -> RatingPrompt:
        return RatingPrompt(
            step_id=step.id,
            content=step.content or messages.FLOW_RATING,
            scale=self._script.rating_scale,
            question=self._script.rating_question,
        )

    @staticmethod
    def _event(event_type: EventType, conversation: Conversation, **payload) -> OutboundEvent:
        return OutboundEvent(type=event_type, conversation_id=conversation.id, payload=payload)
