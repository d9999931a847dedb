from enum import Enum
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, Field, PrivateAttr, ValidationError, model_validator

from switchboard.errors import ConfigurationError


class StepType(str, Enum):
    MESSAGE = "message"
    CHOICE = "choice"
    AI_HANDOFF = "ai_handoff"
    AGENT_QUEUE = "agent_queue"
    RATING = "rating"


class FlowOption(BaseModel):
    text: str
    value: str
    next_step: str = Field(default="", validation_alias=AliasChoices("next_step", "nextStep"))


class FlowStep(BaseModel):
    id: str
    type: StepType
    content: str = ""
    next_step: str = Field(default="", validation_alias=AliasChoices("next_step", "nextStep"))
    options: list[FlowOption] = Field(default_factory=list)
    department: Optional[str] = None  # ai_handoff / agent_queue binding

    def option(self, value: str) -> Optional[FlowOption]:
        for option in self.options:
            if option.value == value:
                return option
        return None


class FlowScript(BaseModel):
    """Operator-authored step graph. Loops are allowed; the engine bounds auto-advance."""

    enabled: bool = False
    entry_step: str = Field(default="welcome", validation_alias=AliasChoices("entry_step", "entryStep"))
    steps: list[FlowStep] = Field(default_factory=list)
    rating_scale: int = Field(default=5, ge=1, le=10, validation_alias=AliasChoices("rating_scale", "scale"))
    rating_question: str = Field(
        default="How would you rate your experience?",
        validation_alias=AliasChoices("rating_question", "question"),
    )

    _index: dict[str, FlowStep] = PrivateAttr(default_factory=dict)

    @model_validator(mode="after")
    def _check_structure(self) -> "FlowScript":
        seen = set()
        for step in self.steps:
            if step.id in seen:
                raise ValueError(f"duplicate step id {step.id!r}")
            seen.add(step.id)
            if step.type == StepType.CHOICE and not step.options:
                raise ValueError(f"choice step {step.id!r} has no options")
        return self

    def model_post_init(self, __context: Any) -> None:
        self._index = {step.id: step for step in self.steps}

    def step(self, step_id: str) -> Optional[FlowStep]:
        return self._index.get(step_id)

    def entry(self) -> Optional[FlowStep]:
        step = self.step(self.entry_step)
        if step is None and self.steps:
            return self.steps[0]
        return step

    def dangling_references(self) -> list[tuple[str, str]]:
        """(step id, missing target) pairs for every unresolved next-step reference."""
        missing = []
        for step in self.steps:
            targets = [step.next_step] + [option.next_step for option in step.options]
            for target in targets:
                if target and target not in self._index:
                    missing.append((step.id, target))
        return missing

    @classmethod
    def from_config(cls, data: dict, *, validate_references: bool = True) -> "FlowScript":
        """Build a script from operator config, failing fast on malformed input.

        ``validate_references=False`` accepts drafts whose next-step targets are
        not written yet; the engine treats such targets as terminal no-ops.
        """
        try:
            script = cls.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid flow script: {e}") from e

        if validate_references:
            missing = script.dangling_references()
            if missing:
                details = ", ".join(f"{step_id} -> {target}" for step_id, target in missing)
                raise ConfigurationError(f"Flow script references unknown steps: {details}")
        return script
