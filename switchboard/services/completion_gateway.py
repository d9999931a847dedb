"""Adapter between the routing core and the completion provider.

Builds the department-scoped system prompt, trims history to the prompt
window and bounds the provider call with a timeout. It never touches
Conversation state; callers record the turn themselves.
"""

import asyncio
from dataclasses import dataclass
from typing import Optional, Sequence, Union

from switchboard.errors import ProviderError, ServiceUnavailable
from switchboard.logging_config import get_logger
from switchboard.models.conversation import HistoryEntry
from switchboard.models.persona import Persona
from switchboard.services.knowledge import KnowledgeLookup
from switchboard.services.llm.base import CompletionRequest, LLMProvider
from switchboard.services.persona_registry import PersonaRegistry

logger = get_logger("completion_gateway")

PROMPT_HISTORY_WINDOW = 10


@dataclass
class CompletionResult:
    text: str
    usage: Optional[dict] = None
    model: Optional[str] = None


def _as_message(entry: Union[HistoryEntry, dict]) -> dict:
    if isinstance(entry, HistoryEntry):
        return {"role": entry.role.value, "content": entry.text}
    return {"role": entry["role"], "content": entry.get("content", entry.get("text", ""))}


class CompletionGateway:
    def __init__(
        self,
        provider: Optional[LLMProvider],
        personas: PersonaRegistry,
        knowledge: Optional[KnowledgeLookup] = None,
        *,
        history_window: int = PROMPT_HISTORY_WINDOW,
        timeout_seconds: float = 20.0,
        max_tokens: int = 800,
        temperature: float = 0.7,
        model: Optional[str] = None,
    ):
        self.provider = provider
        self.personas = personas
        self.knowledge = knowledge
        self.history_window = history_window
        self.timeout_seconds = timeout_seconds
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.model = model

    def is_ready(self) -> bool:
        return self.provider is not None and self.provider.is_ready()

    def init_persona(self, department: str) -> Persona:
        """Bind the AI to a department persona before its first specialised turn."""
        if not self.is_ready():
            raise ServiceUnavailable("AI service not configured")
        persona = self.personas.get(department) or self.personas.main_router()
        logger.info(f"Persona {persona.name} ({persona.role}) ready for {persona.department}")
        return persona

    def build_system_prompt(self, department: str, message: str, extra_instructions: str = "") -> str:
        persona = self.personas.get(department) or self.personas.main_router()
        prompt = persona.instructions or f"You are {persona.name}, {persona.role}."
        if persona.style:
            prompt += f" Your tone is {persona.style}."
        if extra_instructions:
            prompt += f"\n\n{extra_instructions}"
        return prompt + self._knowledge_context(message, department)

    def _knowledge_context(self, message: str, department: str) -> str:
        if self.knowledge is None:
            return ""
        try:
            return self.knowledge.get_context_for_message(message, department) or ""
        except Exception as e:
            logger.warning(f"Knowledge lookup failed, continuing without context: {e}")
            return ""

    async def complete(
        self,
        message: str,
        department: str,
        history: Sequence[Union[HistoryEntry, dict]] = (),
        options: Optional[dict] = None,
    ) -> CompletionResult:
        """Generate the next assistant turn for ``department``.

        Raises:
            ServiceUnavailable: no provider credentials configured.
            ProviderError: the provider failed or did not answer within the timeout.
        """
        if not self.is_ready():
            raise ServiceUnavailable("AI service not configured")

        options = options or {}
        window = list(history)[-self.history_window :] if self.history_window > 0 else []
        request = CompletionRequest(
            system_prompt=self.build_system_prompt(department, message, options.get("instructions", "")),
            messages=[_as_message(entry) for entry in window] + [{"role": "user", "content": message}],
            max_tokens=options.get("max_tokens", self.max_tokens),
            temperature=options.get("temperature", self.temperature),
            model=options.get("model", self.model),
        )

        try:
            response = await asyncio.wait_for(self.provider.generate(request), timeout=self.timeout_seconds)
        except asyncio.TimeoutError as e:
            logger.error(f"Completion timed out after {self.timeout_seconds}s", extra={"context": {"department": department}})
            raise ProviderError(f"Completion timed out after {self.timeout_seconds}s") from e
        except ProviderError:
            raise
        except Exception as e:
            logger.error(f"Completion provider failed: {e}", exc_info=True)
            raise ProviderError(f"Completion provider failed: {e}") from e

        text = (response.content or "").strip()
        if not text:
            raise ProviderError("Completion provider returned an empty response")

        logger.debug(
            "Completion generated",
            extra={"context": {"department": department, "history_turns": len(window), "usage": response.usage}},
        )
        return CompletionResult(text=text, usage=response.usage, model=response.model)
