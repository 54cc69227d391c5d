"""Lobby server configuration via environment variables (LOBBY_ prefix)."""

from pydantic import Field, field_validator
from pydantic_settings import SettingsConfigDict

from shared.ids import DEFAULT_SHORT_CODE_LENGTH
from shared.validators import StringListSettings, parse_string_list


class LobbyServerSettings(StringListSettings):
    model_config = SettingsConfigDict(env_prefix="LOBBY_")

    # ":memory:" keeps games only for the life of the process.
    database_path: str = Field(default="backend/data/games.db", min_length=1)
    log_dir: str = Field(default="backend/logs/lobby", min_length=1)
    # Browser origins allowed to call the HTTP API; none by default.
    cors_origins: list[str] = []
    access_code_length: int = Field(default=DEFAULT_SHORT_CODE_LENGTH, ge=2, le=32)
    access_code_attempts: int = Field(default=5, ge=1)

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: str | list[str]) -> list[str]:
        return parse_string_list(v, allow_empty=True)
