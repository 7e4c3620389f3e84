"""
Pull the structured fields out of an agent's free-text reply.

Agents are asked to answer with labelled lines:

    MOVE: Nf3
    THOUGHT: developing, and eyeing e5
    TRASH: you'll regret that pawn

A reply that is nothing but a single token is taken to be the move itself.
"""

import re
from dataclasses import dataclass
from typing import Callable, Optional

MOVE_FIELD = re.compile(r"^\W*MOVE\W*:[ \t*_`]*(?P<value>[^\n]+)", re.IGNORECASE | re.MULTILINE)
THOUGHT_FIELD = re.compile(r"^\W*THOUGHT\W*:[ \t*_`]*(?P<value>[^\n]+)", re.IGNORECASE | re.MULTILINE)
TRASH_FIELD = re.compile(r"^\W*TRASH\W*:[ \t*_`]*(?P<value>[^\n]+)", re.IGNORECASE | re.MULTILINE)
MOVE_NUMBER = re.compile(r"^\d+\.+\s*")
BARE_TOKEN = re.compile(r"^\s*(?P<value>\S{2,10})\s*$")


@dataclass(frozen=True)
class AgentReply:
    raw: str
    move: Optional[str] = None
    thought: Optional[str] = None
    trash: Optional[str] = None

    @property
    def commentary(self) -> Optional[str]:
        """The public remark if there is one, else the private one."""
        return self.trash or self.thought


ReplyParser = Callable[[str], AgentReply]


def _field(pattern: re.Pattern[str], content: str) -> Optional[str]:
    match = pattern.search(content)
    if match is None:
        return None
    value = match["value"].strip()
    return value or None


def extract_reply(content: str) -> AgentReply:
    move = _field(MOVE_FIELD, content)
    if move is None:
        bare = BARE_TOKEN.match(content)
        move = bare["value"] if bare else None
    else:
        # "MOVE: 12. Nf3 (developing)" -> "Nf3"
        tokens = MOVE_NUMBER.sub("", move).split()
        move = tokens[0] if tokens else None

    return AgentReply(
        raw=content,
        move=move,
        thought=_field(THOUGHT_FIELD, content),
        trash=_field(TRASH_FIELD, content),
    )
