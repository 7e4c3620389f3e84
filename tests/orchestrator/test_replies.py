"""Unit tests for arena/orchestrator/replies.py"""

from typing import Optional

import pytest

from arena.orchestrator.replies import extract_reply


def test_labelled_fields() -> None:
    reply = extract_reply("MOVE: Nf3\nTHOUGHT: develop first\nTRASH: is that all you've got?")
    assert reply.move == "Nf3"
    assert reply.thought == "develop first"
    assert reply.trash == "is that all you've got?"
    assert reply.commentary == "is that all you've got?"


def test_thought_is_the_fallback_commentary() -> None:
    reply = extract_reply("THOUGHT: quiet move\nMOVE: g3")
    assert reply.move == "g3"
    assert reply.commentary == "quiet move"


@pytest.mark.parametrize(
    "content, move",
    [
        ("MOVE: 12. Nf3 (developing)", "Nf3"),
        ("move: e4", "e4"),
        ("**MOVE:** exd5", "exd5"),
        ("Sure! Here is my answer.\n- MOVE: O-O\n- TRASH: safety first", "O-O"),
        ("e4", "e4"),
        ("  Qh4#\n", "Qh4#"),
    ],
)
def test_move_extraction(content: str, move: str) -> None:
    assert extract_reply(content).move == move


@pytest.mark.parametrize(
    "content",
    ["", "I think I will play the king's pawn", "THOUGHT: no idea\nTRASH: none either"],
)
def test_no_move(content: str) -> None:
    reply = extract_reply(content)
    move: Optional[str] = reply.move
    assert move is None
    assert reply.raw == content
