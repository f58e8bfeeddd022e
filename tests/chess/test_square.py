"""Unit tests for /src/chess/square.py"""

import pytest

from src.chess.square import BOARD_DIMENSIONS, Square, is_valid_notation


@pytest.mark.parametrize(
    "notation, file, rank",
    [("A1", 1, 1), ("H8", 8, 8), ("E4", 5, 4), ("B7", 2, 7)],
)
def test_square_from_notation(notation: str, file: int, rank: int) -> None:
    """Columns A-H map onto files 1-8, rows are taken as they are."""
    square = Square.from_notation(notation)
    assert square == Square(file, rank)
    assert square.to_notation() == notation


def test_offset_can_leave_the_board() -> None:
    """Offsets do not clip. Leaving the board is for the caller to check."""
    corner = Square.from_notation("H8")
    assert corner.offset(-1, -2) == Square.from_notation("G6")
    assert corner.offset(1, 0).is_within_bounds() is False
    assert corner.offset(0, 0).is_within_bounds() is True


def test_all_squares_within_bounds() -> None:
    files, ranks = BOARD_DIMENSIONS
    squares = [Square(f, r) for f in range(1, files + 1) for r in range(1, ranks + 1)]
    assert len(squares) == 64
    assert all(square.is_within_bounds() for square in squares)
    assert not Square(0, 4).is_within_bounds()
    assert not Square(4, 9).is_within_bounds()


@pytest.mark.parametrize(
    "notation, expected",
    [
        ("A1", True),
        ("H8", True),
        ("I1", False),  # column out of range
        ("A9", False),  # row out of range
        ("A0", False),
        ("a1", False),  # lowercase is not part of the protocol
        ("XX", False),  # captured sentinel is not a square
        ("E", False),
        ("E44", False),
    ],
)
def test_is_valid_notation(notation: str, expected: bool) -> None:
    assert is_valid_notation(notation) is expected
