"""Relay server configuration via environment variables."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from shared.validators import StringListEnvSettingsSource, parse_string_list

if TYPE_CHECKING:
    from pydantic_settings.sources.base import PydanticBaseSettingsSource


class RelayServerSettings(BaseSettings):
    model_config = {"env_prefix": "RELAY_"}

    log_dir: str = Field(default="backend/logs/relay", min_length=1)
    cors_origins: list[str] = []
    ws_allowed_origins: list[str] = []  # empty accepts any Origin
    static_dir: str = "frontend/public"
    max_rooms: int = Field(default=1000, ge=1)
    max_message_bytes: int = Field(default=64 * 1024, ge=1024)
    move_rate_limit: float = Field(default=50.0, gt=0)
    move_rate_burst: int = Field(default=80, ge=1)
    control_rate_limit: float = Field(default=5.0, gt=0)
    control_rate_burst: int = Field(default=10, ge=1)

    @field_validator("cors_origins", "ws_allowed_origins", mode="before")
    @classmethod
    def validate_origin_lists(cls, v: str | list[str]) -> list[str]:
        return parse_string_list(v, allow_empty=True)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (init_settings, StringListEnvSettingsSource(settings_cls), dotenv_settings, file_secret_settings)
