import random
import unittest

from rules.cards import (
    Card,
    GameState,
    InvalidDealError,
    Move,
    Position,
    card_counts,
    check_conservation,
    create_deck,
    deal_new_game,
    is_conserved,
    new_game_state,
    shuffle_deck,
)


class CardModelTestCase(unittest.TestCase):
    def test_deck_has_each_card_once(self):
        deck = create_deck()
        self.assertEqual(52, len(deck))
        self.assertEqual(52, len(set(deck)))
        self.assertEqual(list(range(52)), sorted(card.id for card in deck))

    def test_card_color_and_identity(self):
        self.assertEqual("red", Card("hearts", 5).color)
        self.assertEqual("red", Card("diamonds", 12).color)
        self.assertEqual("black", Card("spades", 1).color)
        self.assertEqual("black", Card("clubs", 13).color)
        self.assertEqual(Card("hearts", 5), Card("hearts", 5))
        self.assertEqual(Card("clubs", 13), Card.from_id(Card("clubs", 13).id))

    def test_parse_and_format(self):
        self.assertEqual(Card("hearts", 10), Card.parse("10H"))
        self.assertEqual(Card("spades", 1), Card.parse("as"))
        self.assertEqual("QD", str(Card.parse("QD")))
        self.assertEqual("♣K", Card("clubs", 13).game_str())
        with self.assertRaises(ValueError):
            Card.parse("1X")

    def test_move_notation(self):
        move = Move(Position.tableau(3, 5), Position.foundation(1))
        self.assertEqual("T3:5->H1", move.to_notation())
        self.assertEqual("F2->T0", Move(Position.free_cell(2), Position.tableau(0)).to_notation())

    def test_shuffle_does_not_touch_input(self):
        deck = create_deck()
        out = shuffle_deck(deck, random.Random(7))
        self.assertEqual(create_deck(), deck)
        self.assertEqual(sorted(c.id for c in deck), sorted(c.id for c in out))


class DealTestCase(unittest.TestCase):
    def test_deal_is_round_robin_over_eight_columns(self):
        columns = deal_new_game(seed=42)
        self.assertEqual(8, len(columns))
        self.assertEqual([7, 7, 7, 7, 6, 6, 6, 6], [len(col) for col in columns])

        rng = random.Random(42)
        deck = shuffle_deck(create_deck(), rng)
        for i, card in enumerate(deck):
            self.assertEqual(card, columns[i % 8][i // 8])

    def test_seeded_deal_is_deterministic(self):
        self.assertEqual(deal_new_game(seed=20260210), deal_new_game(seed=20260210))
        self.assertNotEqual(deal_new_game(seed=1), deal_new_game(seed=2))

    def test_new_game_state_is_empty_apart_from_columns(self):
        state = new_game_state(seed=3)
        self.assertEqual((None, None, None, None), state.free_cells)
        self.assertEqual({"spades": 0, "hearts": 0, "diamonds": 0, "clubs": 0}, state.foundation_map())
        self.assertTrue(is_conserved(state))


class ConservationTestCase(unittest.TestCase):
    def test_foundation_ranks_count_as_cards(self):
        deck = create_deck()
        rest = [c for c in deck if not (c.suit == "spades" and c.rank <= 3)]
        state = GameState(
            free_cells=(None,) * 4,
            foundations=(3, 0, 0, 0),
            tableaus=tuple(tuple(rest[i::8]) for i in range(8)),
        )
        counts = card_counts(state)
        self.assertEqual(52, sum(counts.values()))
        check_conservation(state)

    def test_duplicate_card_is_rejected(self):
        columns = [list(col) for col in deal_new_game(seed=9)]
        columns[0][0] = columns[1][0]
        with self.assertRaises(InvalidDealError):
            GameState.initial(columns)

    def test_missing_card_is_rejected(self):
        columns = [list(col) for col in deal_new_game(seed=9)]
        columns[5].pop()
        state = GameState(free_cells=(None,) * 4, foundations=(0,) * 4, tableaus=tuple(tuple(c) for c in columns))
        self.assertFalse(is_conserved(state))

    def test_wrong_zone_sizes_are_rejected(self):
        state = GameState(free_cells=(None,) * 3, foundations=(13,) * 4, tableaus=((),) * 8)
        with self.assertRaises(InvalidDealError):
            check_conservation(state)


if __name__ == "__main__":
    unittest.main()
