"""
Configuration for the arena.

Settings are pydantic models so that values coming from the environment (all strings) get validated and coerced.
`ArenaSettings.from_env()` reads ARENA_* variables; anything unset keeps its default.
"""

import logging
import os
from typing import Mapping, Optional, Self

from pydantic import BaseModel, ConfigDict, Field, field_validator

from arena.core.shared_types import PromotionPiece

ENV_PREFIX = "ARENA_"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class OrchestratorSettings(BaseModel):
    """Knobs of the turn loop."""

    model_config = ConfigDict(frozen=True)

    # Consecutive invalid moves an agent may produce before the director has to step in
    max_hallucination_retries: int = Field(default=3, ge=1)
    turn_delay_seconds: float = Field(default=2.0, ge=0)
    # None: wait for the agent as long as it takes
    request_timeout_seconds: Optional[float] = Field(default=120.0, gt=0)
    use_streaming: bool = False
    # Applied when an agent moves a pawn to the last rank without naming a piece. None: agent must name it.
    default_promotion: Optional[PromotionPiece] = PromotionPiece.QUEEN

    @field_validator("default_promotion", "request_timeout_seconds", mode="before")
    @classmethod
    def empty_means_none(cls, value: object) -> object:
        if isinstance(value, str) and value.strip().lower() in {"", "none", "-"}:
            return None
        return value


class ArenaSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    database_url: str = "sqlite:///arena.db"
    log_level: str = "INFO"
    orchestrator: OrchestratorSettings = Field(default_factory=OrchestratorSettings)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log level: {value!r}")
        return level

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> Self:
        """Build settings from ARENA_* variables (ARENA_DATABASE_URL, ARENA_TURN_DELAY_SECONDS, ...)."""
        environ = os.environ if environ is None else environ

        def _collect(fields: list[str]) -> dict[str, str]:
            return {
                name: environ[f"{ENV_PREFIX}{name.upper()}"]
                for name in fields
                if f"{ENV_PREFIX}{name.upper()}" in environ
            }

        orchestrator = OrchestratorSettings.model_validate(
            _collect(list(OrchestratorSettings.model_fields))
        )
        top_level = [name for name in cls.model_fields if name != "orchestrator"]
        return cls.model_validate({**_collect(top_level), "orchestrator": orchestrator})


def configure_logging(level: str = "INFO") -> None:
    """Root logger setup for scripts/servers embedding the arena. Library code only creates named loggers."""
    logging.basicConfig(level=level, format=LOG_FORMAT)
