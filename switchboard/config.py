from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Completion provider
    openai_api_key: Optional[str] = None
    llm_model: str = "gpt-4o-mini"
    llm_base_url: str = "https://api.openai.com/v1/chat/completions"
    llm_timeout_seconds: float = 20.0
    llm_max_tokens: int = 800
    llm_temperature: float = 0.7

    # Routing thresholds
    transfer_confidence: float = 0.7
    suggestion_confidence: float = 0.4
    specialist_switch_confidence: float = 0.8

    # History
    history_limit: int = 20
    prompt_history_window: int = 10

    # Sessions
    session_idle_hours: float = 24.0
    sweep_interval_seconds: float = 300.0
    sweeper_enabled: bool = True

    # Flow builder / personas
    flow_script_file: Optional[str] = None
    flow_max_auto_advance: int = 20
    personas_file: Optional[str] = None
    knowledge_file: Optional[str] = None

    # State backend: memory | redis
    state_backend: str = "memory"
    redis_url: str = "redis://localhost:6379/0"
    state_key_prefix: str = "switchboard:conversation"

    # Ops
    log_level: str = "INFO"
    alert_bot_token: Optional[str] = None
    alert_chat_id: Optional[str] = None

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
