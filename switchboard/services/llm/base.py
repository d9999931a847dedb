from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class CompletionRequest:
    system_prompt: str
    messages: List[dict] = field(default_factory=list)
    max_tokens: int = 800
    temperature: float = 0.7
    model: Optional[str] = None

    def to_messages(self) -> List[dict]:
        return [{"role": "system", "content": self.system_prompt}, *self.messages]


@dataclass
class LLMResponse:
    content: str
    model: str
    usage: Optional[dict] = None


class LLMProvider(ABC):
    """Abstract base class for completion providers."""

    @abstractmethod
    def is_ready(self) -> bool:
        """False when the provider has no credentials configured."""
        pass

    @abstractmethod
    async def generate(self, request: CompletionRequest) -> LLMResponse:
        """Generate a completion. Raises ProviderError on failure."""
        pass
