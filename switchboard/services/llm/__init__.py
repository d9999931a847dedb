from switchboard.services.llm.base import CompletionRequest, LLMProvider, LLMResponse
from switchboard.services.llm.openai_provider import OpenAIProvider

__all__ = ["CompletionRequest", "LLMProvider", "LLMResponse", "OpenAIProvider"]
