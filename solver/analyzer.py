from __future__ import annotations

import argparse
import asyncio
import heapq
import json
import logging
import time
from dataclasses import dataclass
from typing import Callable, Generator, Iterable, Optional

from rules.autoplay import check_win, get_safe_foundation_moves, iter_legal_moves
from rules.cards import Card, GameState, Move, new_game_state
from rules.moves import execute_move

logger = logging.getLogger(__name__)

StateKey = tuple[tuple[Optional[Card], ...], tuple[int, ...], tuple[tuple[Card, ...], ...]]
ProgressCallback = Callable[[int], None]


@dataclass(frozen=True, slots=True)
class SearchLimits:
    max_nodes: int = 15_000
    progress_every: int = 200
    max_seconds: Optional[float] = None


@dataclass(frozen=True, slots=True)
class SearchPolicy:
    # A safe foundation move is the only successor when one exists.
    safe_move_shortcut: bool = True
    # Sort free-cell contents in the key so slot permutations collapse.
    canonical_free_cells: bool = False


DEFAULT_LIMITS = SearchLimits()
DEFAULT_POLICY = SearchPolicy()


@dataclass(slots=True)
class SolveResult:
    status: str
    stop_reason: str
    solution: tuple[Move, ...]
    expanded_nodes: int
    generated_nodes: int
    unique_states: int
    duplicate_states_skipped: int
    safe_moves: int
    max_frontier: int
    elapsed_ms: float

    @property
    def solved(self) -> bool:
        return self.status == "solved"

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "reason": self.stop_reason,
            "solution_len": len(self.solution),
            "solution": [move.to_notation() for move in self.solution],
            "expanded_nodes": self.expanded_nodes,
            "generated_nodes": self.generated_nodes,
            "unique_states": self.unique_states,
            "duplicate_states_skipped": self.duplicate_states_skipped,
            "safe_moves": self.safe_moves,
            "max_frontier": self.max_frontier,
            "elapsed_ms": round(self.elapsed_ms, 3),
        }


@dataclass(frozen=True, slots=True)
class _Node:
    state: GameState
    parent: Optional["_Node"]
    move: Optional[Move]


def state_score(state: GameState) -> int:
    return 100 * sum(state.foundations) + 20 * state.empty_free_cells() + 50 * state.empty_tableaus()


def _card_order(card: Optional[Card]) -> int:
    return card.id if card is not None else 52


def canonical_state_key(state: GameState, policy: SearchPolicy = DEFAULT_POLICY) -> StateKey:
    """
    Dedup key: free cells in slot order, foundation ranks, columns in order.
    Columns are never reordered; free cells are sorted only on request.
    """
    free_cells = state.free_cells
    if policy.canonical_free_cells:
        free_cells = tuple(sorted(free_cells, key=_card_order))
    return free_cells, state.foundations, state.tableaus


def _reconstruct(node: _Node) -> tuple[Move, ...]:
    moves: list[Move] = []
    cur = node
    while cur.parent is not None:
        moves.append(cur.move)
        cur = cur.parent
    moves.reverse()
    return tuple(moves)


def _search(
    initial_state: GameState,
    limits: SearchLimits,
    policy: SearchPolicy,
) -> Generator[int, Optional[bool], SolveResult]:
    """
    Best-first search. Yields the expansion count every ``progress_every``
    expansions; sending ``True`` back stops the search as cancelled.
    """
    start = time.perf_counter()
    counter = 0
    frontier: list[tuple[int, int, _Node]] = [(-state_score(initial_state), counter, _Node(initial_state, None, None))]
    visited: set[StateKey] = set()

    expanded = 0
    generated = 1
    duplicates = 0
    safe_moves = 0
    max_frontier = 1
    stop_reason = "search_space_exhausted"

    def finish(status: str, reason: str, solution: tuple[Move, ...] = ()) -> SolveResult:
        return SolveResult(
            status=status,
            stop_reason=reason,
            solution=solution,
            expanded_nodes=expanded,
            generated_nodes=generated,
            unique_states=len(visited),
            duplicate_states_skipped=duplicates,
            safe_moves=safe_moves,
            max_frontier=max_frontier,
            elapsed_ms=(time.perf_counter() - start) * 1000.0,
        )

    while frontier:
        if expanded >= limits.max_nodes:
            stop_reason = "limits_reached"
            break
        if limits.max_seconds is not None and (time.perf_counter() - start) >= limits.max_seconds:
            stop_reason = "limits_reached"
            break

        _, _, node = heapq.heappop(frontier)
        expanded += 1
        if limits.progress_every > 0 and expanded % limits.progress_every == 0:
            logger.debug("expanded=%d frontier=%d visited=%d", expanded, len(frontier), len(visited))
            if (yield expanded):
                stop_reason = "cancelled"
                break

        state = node.state
        if check_win(state):
            return finish("solved", "goal_reached", _reconstruct(node))

        key = canonical_state_key(state, policy)
        if key in visited:
            duplicates += 1
            continue
        visited.add(key)

        safe = get_safe_foundation_moves(state) if policy.safe_move_shortcut else None
        if safe is not None:
            safe_moves += 1
            moves: Iterable[Move] = (safe,)
        else:
            moves = iter_legal_moves(state, skip_degenerate=True)
        for move in moves:
            next_state = execute_move(state, move.source, move.dest)
            if canonical_state_key(next_state, policy) in visited:
                duplicates += 1
                continue
            counter += 1
            heapq.heappush(frontier, (-state_score(next_state), counter, _Node(next_state, node, move)))
            generated += 1

        if len(frontier) > max_frontier:
            max_frontier = len(frontier)

    return finish("no_solution", stop_reason)


def _log_outcome(result: SolveResult) -> None:
    if result.solved:
        logger.info("solved in %d moves after %d expansions", len(result.solution), result.expanded_nodes)
    else:
        logger.info("no solution (%s) after %d expansions", result.stop_reason, result.expanded_nodes)


def solve_state(
    initial_state: GameState,
    limits: SearchLimits = DEFAULT_LIMITS,
    policy: SearchPolicy = DEFAULT_POLICY,
    on_progress: Optional[ProgressCallback] = None,
    should_stop: Optional[Callable[[], bool]] = None,
) -> SolveResult:
    """Run the whole search on the calling thread."""

    search = _search(initial_state, limits, policy)
    stop = None
    while True:
        try:
            nodes = search.send(stop)
        except StopIteration as done:
            result = done.value
            break
        if on_progress is not None:
            on_progress(nodes)
        stop = should_stop is not None and should_stop()
    _log_outcome(result)
    return result


async def solve_async(
    initial_state: GameState,
    on_progress: Optional[ProgressCallback] = None,
    limits: SearchLimits = DEFAULT_LIMITS,
    policy: SearchPolicy = DEFAULT_POLICY,
    should_stop: Optional[Callable[[], bool]] = None,
) -> SolveResult:
    """Like :func:`solve_state`, but hands control back to the event loop at every progress point."""

    search = _search(initial_state, limits, policy)
    stop = None
    while True:
        try:
            nodes = search.send(stop)
        except StopIteration as done:
            result = done.value
            break
        if on_progress is not None:
            on_progress(nodes)
        await asyncio.sleep(0)
        stop = should_stop is not None and should_stop()
    _log_outcome(result)
    return result


async def solve(
    initial_state: GameState,
    on_progress: Optional[ProgressCallback] = None,
    limits: SearchLimits = DEFAULT_LIMITS,
    policy: SearchPolicy = DEFAULT_POLICY,
) -> Optional[list[Move]]:
    """Winning move list, or None when nothing was found within the budget."""
    result = await solve_async(initial_state, on_progress=on_progress, limits=limits, policy=policy)
    if not result.solved:
        return None
    return list(result.solution)


def analyze_seed(
    seed: int,
    limits: SearchLimits = DEFAULT_LIMITS,
    policy: SearchPolicy = DEFAULT_POLICY,
) -> SolveResult:
    state = new_game_state(seed=seed)
    logger.info("solving seed %d", seed)
    return solve_state(state, limits=limits, policy=policy)


def analyze_seeds(
    seeds: Iterable[int],
    limits: SearchLimits = DEFAULT_LIMITS,
    policy: SearchPolicy = DEFAULT_POLICY,
) -> list[tuple[int, SolveResult]]:
    return [(seed, analyze_seed(seed, limits=limits, policy=policy)) for seed in seeds]


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Search FreeCell deals for a winning move sequence.")
    parser.add_argument("--seed", type=int, action="append", required=True, help="Deal seed; can be repeated.")
    parser.add_argument("--max-nodes", type=int, default=DEFAULT_LIMITS.max_nodes, help="Search expansion limit.")
    parser.add_argument("--max-seconds", type=float, default=None, help="Optional wall-clock limit in seconds.")
    parser.add_argument(
        "--progress-every", type=int, default=DEFAULT_LIMITS.progress_every, help="Expansions between progress reports."
    )
    parser.add_argument("--canonical-free-cells", action="store_true", help="Treat free-cell permutations as one state.")
    parser.add_argument("--pretty", action="store_true", help="Pretty-print json output.")
    parser.add_argument("--verbose", action="store_true", help="Log search progress to stderr.")
    return parser.parse_args()


def main() -> None:
    args = _parse_args()
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s")
    limits = SearchLimits(max_nodes=args.max_nodes, progress_every=args.progress_every, max_seconds=args.max_seconds)
    policy = SearchPolicy(canonical_free_cells=args.canonical_free_cells)

    payload = []
    for seed, result in analyze_seeds(args.seed, limits=limits, policy=policy):
        row = result.to_dict()
        row["seed"] = seed
        payload.append(row)
    if len(payload) == 1:
        payload = payload[0]

    if args.pretty:
        print(json.dumps(payload, ensure_ascii=False, indent=2))
    else:
        print(json.dumps(payload, ensure_ascii=False))


if __name__ == "__main__":
    main()
