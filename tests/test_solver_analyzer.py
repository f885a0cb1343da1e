import unittest

from rules.autoplay import check_win
from rules.cards import Card, GameState, Position, check_conservation, create_deck, new_game_state
from rules.moves import apply_move
from solver.analyzer import (
    SearchLimits,
    SearchPolicy,
    analyze_seed,
    canonical_state_key,
    solve,
    solve_async,
    solve_state,
    state_score,
)


def cards(*codes):
    return tuple(Card.parse(code) for code in codes)


def board(tableaus=(), free_cells=(), foundations=(0, 0, 0, 0)):
    cells = [Card.parse(c) if c else None for c in free_cells]
    cells += [None] * (4 - len(cells))
    cols = [cards(*col) for col in tableaus]
    cols += [()] * (8 - len(cols))
    return GameState(free_cells=tuple(cells), foundations=tuple(foundations), tableaus=tuple(cols))


def near_won_state():
    return board(tableaus=[("KC",)], foundations=(13, 13, 13, 12))


def endgame_state():
    """Jacks to kings left, with a few kings buried under lower cards."""
    return board(
        tableaus=[("JS", "KS"), ("QS", "JH"), ("QH", "KH"), ("JD", "KD"), ("QD", "JC"), ("KC", "QC")],
        foundations=(10, 10, 10, 10),
    )


def deadlock_state():
    free = cards("KS", "KH", "KD", "KC")
    tops = cards("2S", "3S", "4S", "5S", "2C", "3C", "4C", "5C")
    belows = cards("6S", "7S", "8S", "9S", "6C", "7C", "8C", "9C")
    used = set(free + tops + belows)
    rest = [c for c in create_deck() if c not in used]
    columns = tuple(tuple(rest[4 * i:4 * i + 4]) + (belows[i], tops[i]) for i in range(8))
    return GameState(free_cells=free, foundations=(0, 0, 0, 0), tableaus=columns)


class SolverAnalyzerTestCase(unittest.TestCase):
    def test_default_budget(self):
        limits = SearchLimits()
        self.assertEqual(15000, limits.max_nodes)
        self.assertEqual(200, limits.progress_every)
        self.assertIsNone(limits.max_seconds)

    def test_score_rewards_foundations_and_free_space(self):
        self.assertEqual(4 * 20 + 8 * 50, state_score(board()))
        state = board(tableaus=[("KC",)], free_cells=("QC",), foundations=(13, 13, 13, 11))
        self.assertEqual(100 * 50 + 3 * 20 + 7 * 50, state_score(state))

    def test_solve_one_move_from_win(self):
        result = solve_state(near_won_state())

        self.assertEqual("solved", result.status)
        self.assertEqual("goal_reached", result.stop_reason)
        self.assertEqual(1, len(result.solution))
        move = result.solution[0]
        self.assertEqual(Position.tableau(0, 0), move.source)
        self.assertEqual("foundation", move.dest.zone)
        self.assertTrue(check_win(apply_move(near_won_state(), move.source, move.dest)))

    def test_won_state_needs_no_moves(self):
        result = solve_state(board(foundations=(13, 13, 13, 13)))
        self.assertTrue(result.solved)
        self.assertEqual((), result.solution)
        self.assertEqual(1, result.expanded_nodes)

    def test_solution_replays_to_a_win(self):
        state = endgame_state()
        check_conservation(state)
        result = solve_state(state, limits=SearchLimits(max_nodes=5000))
        self.assertTrue(result.solved)
        self.assertGreater(result.safe_moves, 0)
        for move in result.solution:
            state = apply_move(state, move.source, move.dest)
            check_conservation(state)
        self.assertTrue(check_win(state))

    def test_deadlock_exhausts_the_search(self):
        result = solve_state(deadlock_state())
        self.assertEqual("no_solution", result.status)
        self.assertEqual("search_space_exhausted", result.stop_reason)
        self.assertEqual(1, result.expanded_nodes)
        self.assertEqual((), result.solution)

    def test_budget_stops_the_search(self):
        # A win takes at least 52 moves, so 50 expansions can never reach it.
        progress = []
        result = solve_state(
            new_game_state(seed=20260210),
            limits=SearchLimits(max_nodes=50, progress_every=10),
            on_progress=progress.append,
        )
        self.assertEqual("no_solution", result.status)
        self.assertEqual("limits_reached", result.stop_reason)
        self.assertEqual(50, result.expanded_nodes)
        self.assertEqual([10, 20, 30, 40, 50], progress)

    def test_should_stop_cancels_at_a_progress_point(self):
        result = solve_state(
            new_game_state(seed=4),
            limits=SearchLimits(max_nodes=1000, progress_every=25),
            should_stop=lambda: True,
        )
        self.assertEqual("cancelled", result.stop_reason)
        self.assertEqual(25, result.expanded_nodes)

    def test_solver_skips_duplicate_states(self):
        state = board(tableaus=[("9S",), ("10H",), ("5D",), ("5H",), ("6D",), ("6H",), ("7D",), ("7H",)])
        result = solve_state(state, limits=SearchLimits(max_nodes=300))
        self.assertFalse(result.solved)
        self.assertGreater(result.duplicate_states_skipped, 0)
        self.assertLessEqual(result.unique_states, result.generated_nodes)

    def test_key_keeps_free_cell_slots_unless_asked(self):
        state_a = board(tableaus=[("9S",)], free_cells=("AH", None, "KD"))
        state_b = board(tableaus=[("9S",)], free_cells=("KD", "AH"))
        self.assertNotEqual(canonical_state_key(state_a), canonical_state_key(state_b))
        policy = SearchPolicy(canonical_free_cells=True)
        self.assertEqual(canonical_state_key(state_a, policy), canonical_state_key(state_b, policy))

    def test_key_keeps_column_order(self):
        state_a = board(tableaus=[("9S",), ("8H",)])
        state_b = board(tableaus=[("8H",), ("9S",)])
        self.assertNotEqual(canonical_state_key(state_a), canonical_state_key(state_b))

    def test_without_shortcut_the_endgame_still_solves(self):
        result = solve_state(
            endgame_state(),
            limits=SearchLimits(max_nodes=5000),
            policy=SearchPolicy(safe_move_shortcut=False),
        )
        self.assertTrue(result.solved)
        self.assertEqual(0, result.safe_moves)

    def test_analyze_seed_returns_structured_result(self):
        result = analyze_seed(seed=20260210, limits=SearchLimits(max_nodes=300))
        payload = result.to_dict()
        self.assertIn(payload["status"], {"solved", "no_solution"})
        self.assertIn("expanded_nodes", payload)
        self.assertIn("elapsed_ms", payload)
        self.assertIn("duplicate_states_skipped", payload)
        self.assertLessEqual(payload["expanded_nodes"], 300)


class AsyncSolveTestCase(unittest.IsolatedAsyncioTestCase):
    async def test_solve_resolves_to_move_list(self):
        path = await solve(near_won_state())
        self.assertEqual(1, len(path))

    async def test_solve_resolves_to_none_without_solution(self):
        self.assertIsNone(await solve(deadlock_state()))

    async def test_progress_is_reported_while_suspending(self):
        progress = []
        result = await solve_async(
            new_game_state(seed=8),
            on_progress=progress.append,
            limits=SearchLimits(max_nodes=60, progress_every=20),
        )
        self.assertEqual([20, 40, 60], progress)
        self.assertEqual("limits_reached", result.stop_reason)


if __name__ == "__main__":
    unittest.main()
