from __future__ import annotations

from typing import Optional, Sequence

from rules.cards import FOUNDATION, FREE_CELL, SUITS, TABLEAU, Card, GameState, Position


class IllegalMoveError(ValueError):
    """Raised by :func:`apply_move` when the requested move breaks the rules."""


def is_valid_sequence(cards: Sequence[Card]) -> bool:
    """
    True iff each card sits on one of the opposite color and one rank higher.

    :param cards: the run read from its base (index 0) to the column top
    """
    for i in range(1, len(cards)):
        prev = cards[i - 1]
        curr = cards[i]
        if prev.color == curr.color or prev.rank != curr.rank + 1:
            return False
    return True


def get_max_move_count(empty_free_cells: int, empty_tableaus: int, moving_to_empty_tableau: bool) -> int:
    effective = empty_tableaus - 1 if moving_to_empty_tableau else empty_tableaus
    effective = max(0, effective)
    return (empty_free_cells + 1) * (2 ** effective)


def _in_range(idx, size: int) -> bool:
    return isinstance(idx, int) and 0 <= idx < size


def cards_at(state: GameState, source: Position) -> Optional[tuple[Card, ...]]:
    """Return the movable run named by ``source``, or None if it names nothing movable."""
    if source.zone == FREE_CELL:
        if not _in_range(source.index, len(state.free_cells)):
            return None
        card = state.free_cells[source.index]
        if card is None:
            return None
        return (card,)
    if source.zone == TABLEAU:
        if not _in_range(source.index, len(state.tableaus)):
            return None
        col = state.tableaus[source.index]
        if not _in_range(source.card_index, len(col)):
            return None
        run = col[source.card_index:]
        if not is_valid_sequence(run):
            return None
        return run
    # Foundations are never a move source.
    return None


def can_move(state: GameState, source: Position, dest: Position) -> bool:
    cards = cards_at(state, source)
    if not cards:
        return False

    if dest.zone == FREE_CELL:
        if not _in_range(dest.index, len(state.free_cells)):
            return False
        return len(cards) == 1 and state.free_cells[dest.index] is None

    if dest.zone == FOUNDATION:
        if not _in_range(dest.index, len(SUITS)):
            return False
        if len(cards) != 1:
            return False
        card = cards[0]
        return card.rank == state.foundation_rank(card.suit) + 1

    if dest.zone == TABLEAU:
        if not _in_range(dest.index, len(state.tableaus)):
            return False
        dest_col = state.tableaus[dest.index]
        dest_empty = len(dest_col) == 0
        max_move = get_max_move_count(state.empty_free_cells(), state.empty_tableaus(), dest_empty)
        if len(cards) > max_move:
            return False
        if dest_empty:
            return True
        target = dest_col[-1]
        base = cards[0]
        return target.color != base.color and target.rank == base.rank + 1

    return False


def execute_move(state: GameState, source: Position, dest: Position) -> GameState:
    """
    Build the successor state. No rule is checked here: pair it with
    :func:`can_move`, or call :func:`apply_move` instead.
    """
    free_cells = list(state.free_cells)
    foundations = list(state.foundations)
    tableaus = list(state.tableaus)

    if source.zone == FREE_CELL:
        moving = (free_cells[source.index],)
        free_cells[source.index] = None
    else:
        col = tableaus[source.index]
        moving = col[source.card_index:]
        tableaus[source.index] = col[:source.card_index]

    if dest.zone == FREE_CELL:
        free_cells[dest.index] = moving[0]
    elif dest.zone == FOUNDATION:
        card = moving[0]
        foundations[card.suit_index] = card.rank
    else:
        tableaus[dest.index] = tableaus[dest.index] + moving

    return GameState(free_cells=tuple(free_cells), foundations=tuple(foundations), tableaus=tuple(tableaus))


def apply_move(state: GameState, source: Position, dest: Position) -> GameState:
    if not can_move(state, source, dest):
        raise IllegalMoveError(f"illegal move {source.to_notation()}->{dest.to_notation()}")
    return execute_move(state, source, dest)
