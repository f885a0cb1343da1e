from __future__ import annotations

import random
from typing import Iterator, Optional

from rules.cards import (
    FOUNDATION,
    FREE_CELL,
    FREE_CELL_COUNT,
    NUM_PER_SUIT,
    SUITS,
    TABLEAU,
    TABLEAU_COUNT,
    Card,
    GameState,
    Move,
    Position,
)
from rules.moves import can_move, is_valid_sequence

HINT_SCORE_MARGIN = 5


def _min_opposite_rank(state: GameState, card: Card) -> int:
    if card.color == "red":
        return min(state.foundation_rank("spades"), state.foundation_rank("clubs"))
    return min(state.foundation_rank("hearts"), state.foundation_rank("diamonds"))


def _is_safe_to_bank(state: GameState, card: Card) -> bool:
    if card.rank != state.foundation_rank(card.suit) + 1:
        return False
    return card.rank <= 2 or card.rank <= _min_opposite_rank(state, card) + 1


def get_safe_foundation_moves(state: GameState) -> Optional[Move]:
    """
    First card, scanning free cells then column tops, that can go home
    without being needed later as a base for an opposite-colored card.
    """
    for i, card in enumerate(state.free_cells):
        if card is not None and _is_safe_to_bank(state, card):
            return Move(Position.free_cell(i), Position.foundation(card.suit_index))
    for i, col in enumerate(state.tableaus):
        if col and _is_safe_to_bank(state, col[-1]):
            return Move(Position.tableau(i, len(col) - 1), Position.foundation(col[-1].suit_index))
    return None


def check_win(state: GameState) -> bool:
    return all(rank == NUM_PER_SUIT for rank in state.foundations)


def iter_sources(state: GameState) -> Iterator[Position]:
    for i, card in enumerate(state.free_cells):
        if card is not None:
            yield Position.free_cell(i)
    for i, col in enumerate(state.tableaus):
        for j in range(len(col) - 1, -1, -1):
            if not is_valid_sequence(col[j:]):
                break
            yield Position.tableau(i, j)


def iter_destinations() -> Iterator[Position]:
    for i in range(len(SUITS)):
        yield Position.foundation(i)
    for i in range(TABLEAU_COUNT):
        yield Position.tableau(i)
    for i in range(FREE_CELL_COUNT):
        yield Position.free_cell(i)


def _is_degenerate(state: GameState, source: Position, dest: Position) -> bool:
    if source.zone == FREE_CELL and dest.zone == FREE_CELL:
        return True
    return (
        source.zone == TABLEAU
        and dest.zone == TABLEAU
        and source.card_index == 0
        and not state.tableaus[dest.index]
    )


def iter_legal_moves(state: GameState, skip_degenerate: bool = False) -> Iterator[Move]:
    """Every (source, dest) pair accepted by ``can_move``."""
    dests = tuple(iter_destinations())
    for source in iter_sources(state):
        home = None
        if source.zone == FREE_CELL:
            home = state.free_cells[source.index].suit_index
        elif source.card_index == len(state.tableaus[source.index]) - 1:
            home = state.tableaus[source.index][-1].suit_index
        for dest in dests:
            if source.zone == dest.zone and source.index == dest.index:
                continue
            # One foundation target per card: its own suit's pile.
            if dest.zone == FOUNDATION and dest.index != home:
                continue
            if skip_degenerate and _is_degenerate(state, source, dest):
                continue
            if can_move(state, source, dest):
                yield Move(source, dest)


def check_loss(state: GameState) -> bool:
    if check_win(state):
        return False
    for _ in iter_legal_moves(state):
        return False
    return True


def hint_score(state: GameState, move: Move) -> int:
    source, dest = move.source, move.dest
    if dest.zone == FOUNDATION:
        return 100
    score = 0
    if source.zone == FREE_CELL:
        score += 40
    elif source.card_index > 0:
        score += 20
    else:
        score += 10
    if dest.zone == TABLEAU:
        score += 10
    elif dest.zone == FREE_CELL:
        score -= 20
    return score


def get_hint_move(state: GameState, rng: random.Random | None = None) -> Optional[Move]:
    safe = get_safe_foundation_moves(state)
    if safe is not None:
        return safe

    scored = [(hint_score(state, move), move) for move in iter_legal_moves(state, skip_degenerate=True)]
    if not scored:
        return None
    best = max(score for score, _ in scored)
    options = [move for score, move in scored if score >= best - HINT_SCORE_MARGIN]
    pick_rng = rng if rng is not None else random
    return options[pick_rng.randrange(len(options))]
