"""Requests and Response models"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, field_validator

from arena.chess.fen import is_valid_fen
from arena.chess.notation import parse_notation
from arena.core.exceptions import InvalidRequestError
from arena.core.shared_types import LogKind, MatchStatus, Outcome, Side, TerminationReason

SideName = str


# --- REQUEST MODELS ---
class ForceMoveRequest(BaseModel):
    move: str
    side: Side

    @field_validator("move")
    @classmethod
    def validate_notation(cls, value: str) -> str:
        # Only the shape is checked here; legality is for the rule engine
        if parse_notation(value) is None:
            raise InvalidRequestError(f"Cannot interpret {value!r} as a chess move.")
        return value.strip()


class SetPositionRequest(BaseModel):
    fen: str

    @field_validator("fen")
    @classmethod
    def validate_fen(cls, value: str) -> str:
        value = " ".join(value.split())
        if len(value.split(" ")) != 6:
            raise InvalidRequestError("FEN string must contain 6 space-separated parts.")
        if not is_valid_fen(value):
            raise InvalidRequestError(f"Cannot interpret {value!r} as a valid FEN.")
        return value


class OverridePromptRequest(BaseModel):
    prompt: str

    @field_validator("prompt")
    @classmethod
    def validate_prompt(cls, value: str) -> str:
        if not value.strip():
            raise InvalidRequestError("Prompt override cannot be empty.")
        return value


class DeclareResultRequest(BaseModel):
    outcome: Outcome


class GetMatchRequest(BaseModel):
    match_id: UUID


# --- RESPONSE MODELS ---
class MoveResponse(BaseModel):
    ply: int
    side: Side
    san: str
    uci: str
    commentary: Optional[str] = None
    forced: bool = False


class LogEntryResponse(BaseModel):
    kind: LogKind
    message: str
    side: Optional[Side] = None
    timestamp: datetime


class MatchResponse(BaseModel):
    """What a view needs to render the match."""

    match_id: Optional[UUID] = None
    status: MatchStatus
    fen_state: str
    starting_state: str
    side_to_move: Side
    move_history: list[MoveResponse]
    hallucinations: dict[SideName, int]
    outcome: Optional[Outcome] = None
    termination_reason: Optional[TerminationReason] = None
    log: list[LogEntryResponse] = []
