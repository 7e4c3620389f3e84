"""
Boundary layer data model(s).

These objects are used to communicate with the Service.
Hence, both the API layer (higher) and domain/db layers (lower) use the model(s) defined here to send to/receive from the Service.
(Decouples the data model specific to the DB layer, API layer, or domain layer from the information needed to send across boundaries)
"""

from dataclasses import dataclass, field
from typing import Any, Optional

# Type aliases to make MatchModel easier to read
SideName = str
Count = int
MoveEntry = dict[str, Any]  # one applied ply, keys as in MoveRecord


@dataclass
class MatchModel:
    """Transport-safe snapshot of a match: only strings, numbers and containers of those."""

    current_fen: str
    history_fen: list[str]
    moves: list[MoveEntry]
    status: str
    outcome: Optional[str] = None
    termination_reason: Optional[str] = None
    hallucinations: dict[SideName, Count] = field(default_factory=dict)

    @property
    def moves_san(self) -> list[str]:
        return [str(entry["san"]) for entry in self.moves]
