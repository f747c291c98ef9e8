"""Terminal settings with environment variable overrides."""

from __future__ import annotations

import codecs
import os
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator

from serialterm.exceptions import InvalidParameterError
from serialterm.models.session import BaudRate, SessionConfig, Terminator

ENV_PREFIX = "SERIALTERM_"


class TerminalSettings(BaseModel):
    """Runtime settings for the terminal and its serial session."""
    model_config = {"frozen": True}

    baud_rate: BaudRate = BaudRate.BAUD_9600
    terminator: Terminator = Terminator.NONE
    encoding: str = "utf-8"
    read_timeout: float = Field(default=0.05, gt=0, description="Reader poll interval in seconds")
    write_timeout: float = Field(default=2.0, gt=0)
    close_timeout: float = Field(default=2.0, gt=0, description="Upper bound on waiting for the relay to stop")
    queue_size: int = Field(default=1024, gt=0, description="Max inbound chunks buffered before the reader waits")

    @field_validator("baud_rate", mode="before")
    @classmethod
    def parse_baud_rate(cls, v: Any) -> Any:
        if isinstance(v, str) and v.strip().isdigit():
            return int(v)
        return v

    @field_validator("terminator", mode="before")
    @classmethod
    def parse_terminator(cls, v: Any) -> Any:
        if isinstance(v, str) and v not in {t.value for t in Terminator}:
            return Terminator.from_name(v)
        return v

    @field_validator("encoding")
    @classmethod
    def validate_encoding(cls, v: str) -> str:
        try:
            codecs.lookup(v)
        except LookupError as exc:
            raise ValueError(f"Unknown encoding: {v!r}") from exc
        return v

    def session_config(self) -> SessionConfig:
        return SessionConfig(baud_rate=self.baud_rate)


def _env_overrides() -> dict[str, str]:
    """Collect SERIALTERM_* variables matching settings fields."""
    values: dict[str, str] = {}
    for name in TerminalSettings.model_fields:
        raw = os.environ.get(f"{ENV_PREFIX}{name.upper()}")
        if raw:
            values[name] = raw
    return values


def load_settings(**overrides: Any) -> TerminalSettings:
    """Build settings from defaults, then environment, then explicit overrides.

    Overrides whose value is None are ignored so CLI options left unset
    fall through to the environment.

    Raises:
        InvalidParameterError: If any value fails validation.
    """
    values: dict[str, Any] = _env_overrides()
    values.update({k: v for k, v in overrides.items() if v is not None})
    try:
        return TerminalSettings.model_validate(values)
    except ValidationError as exc:
        raise InvalidParameterError(f"Invalid settings: {exc}") from exc
