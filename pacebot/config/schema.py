"""Configuration schema using Pydantic."""

from pathlib import Path
from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings


class MemoryConfig(BaseModel):
    """Per-conversation memory configuration."""
    max_memory_per_chat: int = Field(default=100, ge=1)  # Turns stored per conversation
    memory_window: int = Field(default=20, ge=0)  # Turns sent to the model per request


class LimitsConfig(BaseModel):
    """Admission limits for outgoing replies."""
    min_reply_delay: float = Field(default=8.0, ge=0)  # Cooldown lower bound, seconds
    max_reply_delay: float = Field(default=50.0, ge=0)  # Cooldown upper bound, seconds
    max_messages_per_user_hourly: int = Field(default=8, ge=1)
    max_messages_per_user_daily: int = Field(default=40, ge=1)
    max_messages_per_minute: int = Field(default=15, ge=1)  # Across all conversations
    max_messages_per_hour: int = Field(default=200, ge=1)  # Across all conversations

    @model_validator(mode="after")
    def _check_delay_range(self) -> "LimitsConfig":
        if self.min_reply_delay > self.max_reply_delay:
            raise ValueError("min_reply_delay must not exceed max_reply_delay")
        return self


class PacingConfig(BaseModel):
    """Human-like delays around sending a reply (seconds)."""
    seen_delay: tuple[float, float] = (2.0, 5.0)
    pre_typing_pause: float = 1.0
    reaction_delay: tuple[float, float] = (1.0, 3.0)
    typing_rate: tuple[float, float] = (0.05, 0.1)  # Seconds per character
    typing_cap: float = 15.0  # Longest typing indicator for any reply

    @model_validator(mode="after")
    def _check_ranges(self) -> "PacingConfig":
        for name in ("seen_delay", "reaction_delay", "typing_rate"):
            low, high = getattr(self, name)
            if low < 0 or low > high:
                raise ValueError(f"{name} must be an ordered, non-negative range")
        return self


class PersistenceConfig(BaseModel):
    """Snapshot files and flush cadence."""
    data_dir: str = "~/.pacebot"
    memory_file: str = "chat_memory.json"
    quota_file: str = "quota_state.json"
    context_file: str = "context_overrides.json"
    flush_interval: float = Field(default=30.0, gt=0)
    sweep_interval: float = Field(default=600.0, gt=0)


class PersonaConfig(BaseModel):
    """Role context prepended to every generation request."""
    default: str = (
        "You are texting on someone's behalf. Keep replies short, casual and human."
    )
    network_suffixes: list[str] = Field(
        default_factory=lambda: ["@c.us", "@s.whatsapp.net", "@g.us"]
    )


class AutoReplyConfig(BaseModel):
    """Auto-reply behaviour."""
    defer_on_cooldown: bool = True  # Re-dispatch after the cooldown instead of dropping
    max_forwarding_score: int = 5  # Ignore messages forwarded more often than this
    max_deferred_chars: int = Field(default=2000, ge=1)  # Cap on merged text of a parked message
    business_token: str = "business"  # Directive that forwards the exchange to the operator
    operator_id: str = ""  # Conversation that receives business forwards
    operator_alias: str = "boss"


class ProviderConfig(BaseModel):
    """Generation backend configuration."""
    model: str = "gemini/gemini-2.5-flash"
    api_key: str = ""
    api_base: str | None = None
    max_tokens: int = 1024
    temperature: float = 0.8
    structured_output: bool = True  # Ask for a JSON payload instead of inline tags


class LoggingConfig(BaseModel):
    """Log sink configuration."""
    level: str = "INFO"
    file: str = "bot_logs.txt"  # Relative to data_dir; empty disables the file sink
    rotation: str = "10 MB"


class Config(BaseSettings):
    """Root configuration for PaceBot."""
    memory: MemoryConfig = Field(default_factory=MemoryConfig)
    limits: LimitsConfig = Field(default_factory=LimitsConfig)
    pacing: PacingConfig = Field(default_factory=PacingConfig)
    persistence: PersistenceConfig = Field(default_factory=PersistenceConfig)
    persona: PersonaConfig = Field(default_factory=PersonaConfig)
    auto_reply: AutoReplyConfig = Field(default_factory=AutoReplyConfig)
    provider: ProviderConfig = Field(default_factory=ProviderConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @property
    def data_path(self) -> Path:
        """Get expanded data directory path."""
        return Path(self.persistence.data_dir).expanduser()

    @property
    def memory_path(self) -> Path:
        return self.data_path / self.persistence.memory_file

    @property
    def quota_path(self) -> Path:
        return self.data_path / self.persistence.quota_file

    @property
    def context_path(self) -> Path:
        return self.data_path / self.persistence.context_file

    @property
    def log_path(self) -> Path | None:
        """Log file path, or None when file logging is disabled."""
        if not self.logging.file:
            return None
        return self.data_path / self.logging.file

    class Config:
        env_prefix = "PACEBOT_"
        env_nested_delimiter = "__"
