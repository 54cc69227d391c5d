"""Shared validation helpers for service settings."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any, get_args, get_origin

from pydantic_settings import BaseSettings, EnvSettingsSource

if TYPE_CHECKING:
    from pydantic.fields import FieldInfo
    from pydantic_settings.sources.base import PydanticBaseSettingsSource


def parse_string_list(value: str | list[str], *, allow_empty: bool = False) -> list[str]:
    """Parse a string list from an environment variable or config value.

    Accepts a list of strings, a JSON array string ('["a","b"]') or a
    comma-separated string ('a,b'). Raises ValueError for blank strings and
    malformed JSON; empty results are rejected unless allow_empty is set.
    """
    if isinstance(value, list):
        result = value
    else:
        stripped = value.strip()
        if not stripped:
            if allow_empty:
                return []
            raise ValueError("String list value must not be empty")
        result = _parse_json_list(stripped) if stripped.startswith("[") else _parse_csv(stripped)

    if not allow_empty and not result:
        raise ValueError("String list value must not be empty")
    return result


def _parse_json_list(raw: str) -> list[str]:
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON array: {e}") from e
    if not isinstance(parsed, list) or not all(isinstance(item, str) for item in parsed):
        raise ValueError("JSON value must be an array of strings")
    return parsed


def _parse_csv(raw: str) -> list[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]


def _is_string_list(field: FieldInfo) -> bool:
    return get_origin(field.annotation) is list and get_args(field.annotation) == (str,)


class StringListEnvSettingsSource(EnvSettingsSource):
    """Env settings source that hands list[str] fields to validators untouched.

    pydantic-settings JSON-decodes list-typed env values before validators run,
    which breaks the comma-separated form accepted by parse_string_list.
    """

    def prepare_field_value(
        self,
        field_name: str,
        field: FieldInfo,
        value: Any,  # noqa: ANN401
        value_is_complex: bool,  # noqa: FBT001
    ) -> Any:  # noqa: ANN401
        if isinstance(value, str) and _is_string_list(field):
            return value
        return super().prepare_field_value(field_name, field, value, value_is_complex)


class StringListSettings(BaseSettings):
    """Settings base whose list[str] fields accept JSON arrays or comma-separated env values.

    Subclasses still need a mode="before" validator calling parse_string_list.
    """

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
