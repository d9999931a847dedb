from typing import Optional

import httpx

from switchboard.errors import ProviderError
from switchboard.logging_config import get_logger
from switchboard.services.llm.base import CompletionRequest, LLMProvider, LLMResponse

logger = get_logger("llm.openai")

DEFAULT_BASE_URL = "https://api.openai.com/v1/chat/completions"


class OpenAIProvider(LLMProvider):
    """OpenAI chat-completions provider."""

    def __init__(
        self,
        api_key: Optional[str],
        default_model: str = "gpt-4o-mini",
        base_url: str = DEFAULT_BASE_URL,
        timeout_seconds: float = 60.0,
    ):
        self.api_key = api_key
        self.default_model = default_model
        self.base_url = base_url
        self.timeout_seconds = timeout_seconds

    def is_ready(self) -> bool:
        return bool(self.api_key)

    async def generate(self, request: CompletionRequest) -> LLMResponse:
        model = request.model or self.default_model
        messages = request.to_messages()
        payload = {
            "model": model,
            "messages": messages,
            "temperature": request.temperature,
            "max_tokens": request.max_tokens,
        }
        logger.debug(f"OpenAI request: model={model}, messages_count={len(messages)}")

        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                response = await client.post(
                    self.base_url,
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                    json=payload,
                )
        except httpx.HTTPError as e:
            logger.error(f"OpenAI transport error: {e}")
            raise ProviderError(f"OpenAI transport error: {e}") from e

        logger.debug(f"OpenAI response status: {response.status_code}")

        if response.status_code != 200:
            logger.error(f"OpenAI error: {response.text}")
            raise ProviderError(
                f"OpenAI API error: {response.status_code} - {response.text}",
                status_code=response.status_code,
            )

        data = response.json()

        content = ""
        if data.get("choices"):
            message = data["choices"][0].get("message", {})
            content = message.get("content") or ""
        logger.debug(f"OpenAI content: {content[:100] if content else 'EMPTY'}")

        return LLMResponse(
            content=content,
            model=data.get("model", model),
            usage=data.get("usage"),
        )
