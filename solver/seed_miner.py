from __future__ import annotations

import argparse
import json
import logging
import time
from pathlib import Path

from solver.analyzer import DEFAULT_LIMITS, SearchLimits, SearchPolicy, analyze_seed

logger = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Batch seed mining for the FreeCell solver.")
    parser.add_argument("--start-seed", type=int, required=True, help="Start seed (inclusive).")
    parser.add_argument("--count", type=int, required=True, help="How many seeds to scan.")
    parser.add_argument("--max-nodes", type=int, default=DEFAULT_LIMITS.max_nodes, help="Per-seed expansion limit.")
    parser.add_argument("--max-seconds", type=float, default=None, help="Per-seed solver time limit.")
    parser.add_argument("--target-solved", type=int, default=1, help="Stop early after this many solved seeds.")
    parser.add_argument("--canonical-free-cells", action="store_true", help="Treat free-cell permutations as one state.")
    parser.add_argument("--jsonl", type=str, default="", help="Optional output jsonl path.")
    parser.add_argument("--verbose", action="store_true", help="Log solver activity to stderr.")
    return parser.parse_args(argv)


def mine(
    start_seed: int,
    count: int,
    limits: SearchLimits,
    policy: SearchPolicy,
    target_solved: int = 1,
    out_path: Path | None = None,
) -> dict:
    """Scan consecutive seeds and return the totals."""
    if out_path is not None:
        out_path.parent.mkdir(parents=True, exist_ok=True)

    logger.info("scanning up to %d seeds from %d", count, start_seed)
    solved = 0
    unsolved = 0
    solved_seeds: list[int] = []
    started = time.perf_counter()

    for i in range(count):
        seed = start_seed + i
        t0 = time.perf_counter()
        result = analyze_seed(seed, limits=limits, policy=policy)
        wall_ms = (time.perf_counter() - t0) * 1000.0

        payload = result.to_dict()
        payload["seed"] = seed
        payload["wall_ms"] = round(wall_ms, 3)

        if out_path is not None:
            with out_path.open("a", encoding="utf-8") as f:
                f.write(json.dumps(payload, ensure_ascii=False) + "\n")

        if result.solved:
            solved += 1
            solved_seeds.append(seed)
        else:
            unsolved += 1

        print(
            f"seed={seed} status={result.status} reason={result.stop_reason} "
            f"wall_ms={wall_ms:.1f} expanded={result.expanded_nodes} "
            f"unique={result.unique_states} moves={len(result.solution)}"
        )

        if solved >= target_solved:
            break

    return {
        "scanned": solved + unsolved,
        "solved": solved,
        "no_solution": unsolved,
        "solved_seeds": solved_seeds,
        "total_ms": round((time.perf_counter() - started) * 1000.0, 3),
    }


def main(argv=None) -> None:
    args = parse_args(argv)
    if args.verbose:
        logging.basicConfig(level=logging.INFO, format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s")
    limits = SearchLimits(max_nodes=args.max_nodes, max_seconds=args.max_seconds)
    policy = SearchPolicy(canonical_free_cells=args.canonical_free_cells)
    out_path = Path(args.jsonl).expanduser() if args.jsonl else None

    totals = mine(args.start_seed, args.count, limits, policy, target_solved=args.target_solved, out_path=out_path)
    print(
        f"summary scanned={totals['scanned']} solved={totals['solved']} "
        f"no_solution={totals['no_solution']} total_ms={totals['total_ms']:.1f}"
    )


if __name__ == "__main__":
    main()
