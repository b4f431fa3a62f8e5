"""Configuration settings models using Pydantic."""

from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

MentionMatch = Literal["id", "title", "id_or_title"]


class DelayBand(BaseModel):
    """Inclusive range of seconds to wait between two agent turns."""

    min_seconds: float = Field(default=0.0, ge=0.0)
    max_seconds: float = Field(default=0.0, ge=0.0)

    @model_validator(mode="after")
    def check_order(self) -> "DelayBand":
        if self.max_seconds < self.min_seconds:
            raise ValueError("max_seconds must be >= min_seconds")
        return self


class ResponseDelaysConfig(BaseModel):
    """Delay bands keyed by a group's response speed."""

    fast: DelayBand = DelayBand(min_seconds=0.0, max_seconds=0.0)
    medium: DelayBand = DelayBand(min_seconds=0.5, max_seconds=1.5)
    slow: DelayBand = DelayBand(min_seconds=2.0, max_seconds=4.0)


class OrchestrationConfig(BaseModel):
    """Configuration for round scheduling."""

    supervisor_timeout: float = Field(default=10.0, gt=0.0)
    agent_timeout: float = Field(default=120.0, gt=0.0)
    supervisor_temperature: float = Field(default=0.3, ge=0.0, le=2.0)
    supervisor_history_limit: int = Field(default=50, ge=1)
    mention_match: MentionMatch = "id_or_title"
    mention_case_sensitive: bool = True
    user_label: str = "User"
    response_delays: ResponseDelaysConfig = Field(default_factory=ResponseDelaysConfig)


class GroupDefaultsConfig(BaseModel):
    """Defaults applied to newly created groups."""

    max_response_in_row: int = Field(default=1, ge=0)
    orchestrator_model: str = "gemini-2.5-flash"
    orchestrator_provider: str = "google"
    response_order: Literal["sequential", "natural"] = "natural"
    response_speed: Literal["fast", "medium", "slow"] = "fast"
    reveal_dm: bool = False

    @field_validator("orchestrator_model", "orchestrator_provider")
    @classmethod
    def validate_not_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("value cannot be empty")
        return v.strip()


class LoggingConfig(BaseModel):
    """Configuration for log output."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    file: Optional[str] = None


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="CHORUS_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    orchestration: OrchestrationConfig = Field(default_factory=OrchestrationConfig)
    group_defaults: GroupDefaultsConfig = Field(default_factory=GroupDefaultsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Environment wins over values passed in from the YAML files
        return env_settings, init_settings, dotenv_settings, file_secret_settings

    def delay_band(self, speed: str) -> DelayBand:
        """Get the inter-turn delay band for a response speed."""
        return getattr(self.orchestration.response_delays, speed, DelayBand())
