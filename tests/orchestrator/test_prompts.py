"""Unit tests for arena/orchestrator/prompts.py"""

from arena.chess.position import Position
from arena.core.shared_types import Side
from arena.orchestrator.match import MoveRecord
from arena.orchestrator.prompts import ANSWER_FORMAT, PlainPromptBuilder, format_move_list


def record(ply: int, side: Side, san: str) -> MoveRecord:
    return MoveRecord(
        ply=ply,
        move_number=(ply + 1) // 2,
        side=side,
        notation=san,
        san=san,
        uci="0000",
        fen_after="",
    )


def test_move_list_is_numbered_by_full_moves() -> None:
    history = [
        record(1, Side.WHITE, "e4"),
        record(2, Side.BLACK, "e5"),
        record(3, Side.WHITE, "Nf3"),
    ]
    assert format_move_list(history) == "1. e4 e5 2. Nf3"
    assert format_move_list([]) == "(no moves yet)"


def test_move_list_starting_with_black() -> None:
    history = [MoveRecord(1, 7, Side.BLACK, "Kd7", "Kd7", "e8d7", "")]
    assert format_move_list(history) == "7... Kd7"


def test_prompt_contents() -> None:
    builder = PlainPromptBuilder()
    position = Position.starting()
    prompt = builder.build_prompt(position, Side.WHITE, [])
    assert "as white" in prompt
    assert position.to_fen() in prompt
    assert "Nf3" in prompt  # legal move list
    assert prompt.endswith(ANSWER_FORMAT)


def test_prompt_without_legal_moves() -> None:
    prompt = PlainPromptBuilder(show_legal_moves=False).build_prompt(
        Position.starting(), Side.WHITE, []
    )
    assert "Legal moves" not in prompt


def test_correction_prompt_carries_the_reason_verbatim() -> None:
    prompt = PlainPromptBuilder().build_correction_prompt(
        Position.starting(), Side.WHITE, "e5", "No pawn can move to e5"
    )
    assert "'e5'" in prompt
    assert "No pawn can move to e5" in prompt
