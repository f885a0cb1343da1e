from __future__ import annotations

import random
from collections import Counter
from dataclasses import dataclass
from typing import Optional

NUM_PER_SUIT = 13
FREE_CELL_COUNT = 4
TABLEAU_COUNT = 8

SUITS = ("spades", "hearts", "diamonds", "clubs")
RED_SUITS = frozenset(("hearts", "diamonds"))
SUIT_LETTERS = "SHDC"
SUIT_SYMBOLS = "♠♥♦♣"
NUMS = ("A", "2", "3", "4", "5", "6", "7", "8", "9", "10", "J", "Q", "K")

FREE_CELL = "freeCell"
FOUNDATION = "foundation"
TABLEAU = "tableau"


class InvalidDealError(ValueError):
    """Raised when a board does not hold each of the 52 cards exactly once."""


@dataclass(frozen=True, slots=True)
class Card:
    suit: str
    rank: int

    @property
    def color(self) -> str:
        return "red" if self.suit in RED_SUITS else "black"

    @property
    def suit_index(self) -> int:
        return SUITS.index(self.suit)

    @property
    def id(self) -> int:
        return self.suit_index * NUM_PER_SUIT + self.rank - 1

    @staticmethod
    def from_id(card_id: int) -> "Card":
        return Card(SUITS[card_id // NUM_PER_SUIT], card_id % NUM_PER_SUIT + 1)

    @staticmethod
    def parse(code: str) -> "Card":
        """Parse short notation such as ``"AS"``, ``"10H"`` or ``"qd"``."""
        code = code.strip().upper()
        if len(code) < 2:
            raise ValueError(f"bad card code: {code!r}")
        num, letter = code[:-1], code[-1]
        if num not in NUMS or letter not in SUIT_LETTERS:
            raise ValueError(f"bad card code: {code!r}")
        return Card(SUITS[SUIT_LETTERS.index(letter)], NUMS.index(num) + 1)

    def game_str(self) -> str:
        return SUIT_SYMBOLS[self.suit_index] + NUMS[self.rank - 1]

    def __str__(self):
        return NUMS[self.rank - 1] + SUIT_LETTERS[self.suit_index]


@dataclass(frozen=True, slots=True)
class Position:
    """A zone plus slot index; tableau positions also name the run start."""

    zone: str
    index: int
    card_index: Optional[int] = None

    @staticmethod
    def free_cell(index: int) -> "Position":
        return Position(FREE_CELL, index)

    @staticmethod
    def foundation(index: int) -> "Position":
        return Position(FOUNDATION, index)

    @staticmethod
    def tableau(index: int, card_index: Optional[int] = None) -> "Position":
        return Position(TABLEAU, index, card_index)

    def to_notation(self) -> str:
        if self.zone == FREE_CELL:
            return f"F{self.index}"
        if self.zone == FOUNDATION:
            return f"H{self.index}"
        if self.card_index is None:
            return f"T{self.index}"
        return f"T{self.index}:{self.card_index}"


@dataclass(frozen=True, slots=True)
class Move:
    source: Position
    dest: Position

    def to_notation(self) -> str:
        return f"{self.source.to_notation()}->{self.dest.to_notation()}"


Column = tuple[Card, ...]


@dataclass(frozen=True, slots=True)
class GameState:
    """Immutable board: four free cells, four foundation ranks, eight columns."""

    free_cells: tuple[Optional[Card], ...]
    # Highest banked rank per suit, in SUITS order.
    foundations: tuple[int, ...]
    tableaus: tuple[Column, ...]

    @staticmethod
    def initial(tableaus) -> "GameState":
        state = GameState(
            free_cells=(None,) * FREE_CELL_COUNT,
            foundations=(0,) * len(SUITS),
            tableaus=tuple(tuple(col) for col in tableaus),
        )
        check_conservation(state)
        return state

    def foundation_rank(self, suit: str) -> int:
        return self.foundations[SUITS.index(suit)]

    def foundation_map(self) -> dict[str, int]:
        return dict(zip(SUITS, self.foundations))

    def empty_free_cells(self) -> int:
        return sum(1 for card in self.free_cells if card is None)

    def empty_tableaus(self) -> int:
        return sum(1 for col in self.tableaus if not col)


def create_deck() -> list[Card]:
    return [Card(suit, rank) for suit in SUITS for rank in range(1, NUM_PER_SUIT + 1)]


def shuffle_deck(deck: list[Card], rng: random.Random | None = None) -> list[Card]:
    out = list(deck)
    (rng if rng is not None else random).shuffle(out)
    return out


def deal_new_game(seed: Optional[int] = None, rng: random.Random | None = None) -> tuple[Column, ...]:
    """Shuffle a full deck and deal it round-robin into the eight columns."""
    if rng is None:
        rng = random.Random(seed)
    deck = shuffle_deck(create_deck(), rng)
    columns: list[list[Card]] = [[] for _ in range(TABLEAU_COUNT)]
    for i, card in enumerate(deck):
        columns[i % TABLEAU_COUNT].append(card)
    return tuple(tuple(col) for col in columns)


def new_game_state(seed: Optional[int] = None, rng: random.Random | None = None) -> GameState:
    return GameState.initial(deal_new_game(seed=seed, rng=rng))


def card_counts(state: GameState) -> Counter:
    """Count every card on the board, expanding foundation ranks into cards."""
    counts: Counter = Counter()
    for card in state.free_cells:
        if card is not None:
            counts[card] += 1
    for suit, top in zip(SUITS, state.foundations):
        for rank in range(1, top + 1):
            counts[Card(suit, rank)] += 1
    for col in state.tableaus:
        counts.update(col)
    return counts


def check_conservation(state: GameState) -> None:
    if len(state.free_cells) != FREE_CELL_COUNT or len(state.tableaus) != TABLEAU_COUNT:
        raise InvalidDealError("board must have 4 free cells and 8 columns")
    if len(state.foundations) != len(SUITS) or any(not 0 <= r <= NUM_PER_SUIT for r in state.foundations):
        raise InvalidDealError(f"bad foundation ranks: {state.foundations}")
    counts = card_counts(state)
    deck = set(create_deck())
    extra = [card for card in counts if card not in deck]
    if extra:
        raise InvalidDealError(f"unknown cards: {', '.join(map(repr, extra))}")
    missing = [card for card in create_deck() if counts[card] == 0]
    duplicated = [card for card, n in counts.items() if n > 1]
    if missing or duplicated:
        raise InvalidDealError(
            f"missing: {', '.join(map(str, missing)) or '-'}; "
            f"duplicated: {', '.join(map(str, duplicated)) or '-'}"
        )


def is_conserved(state: GameState) -> bool:
    try:
        check_conservation(state)
    except InvalidDealError:
        return False
    return True
