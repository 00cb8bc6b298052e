"""
CLI entry point for batching-future.

Usage:
    python main.py demo --inputs 4 6 8 --max-batch-size 3 --max-wait-ms 500
    python main.py bench --count 12
"""

import argparse
import asyncio
import json
import sys
import time
from datetime import timedelta
from typing import List, Optional

from batching_future import ConfigurationError, create_batcher
from batching_future.config import get_settings
from batching_future.logging_config import configure_logging


def _doubler(batches: List[List[int]]):
    """Build a compute function that doubles its inputs and records batches."""

    async def compute(keys: List[int]) -> List[int]:
        batches.append(list(keys))
        return [k * 2 for k in keys]

    return compute


def _build(args, batches: List[List[int]]):
    return create_batcher(
        _doubler(batches),
        max_batch_size=args.max_batch_size or None,
        max_wait=timedelta(milliseconds=args.max_wait_ms) if args.max_wait_ms else None,
        cache_size=args.cache_size or None,
    )


async def _submit_all(args, inputs: List[int]):
    batches: List[List[int]] = []
    async with _build(args, batches) as batcher:
        start = time.perf_counter()
        results = await asyncio.gather(*(batcher.submit(i) for i in inputs))
        elapsed_ms = (time.perf_counter() - start) * 1000
    return list(results), batches, elapsed_ms


def cmd_demo(args):
    """Double the given inputs through a batcher."""
    results, _, _ = asyncio.run(_submit_all(args, args.inputs))
    print(json.dumps(results))


def cmd_bench(args):
    """Submit ``count`` keys and report how they were batched."""
    results, batches, elapsed_ms = asyncio.run(_submit_all(args, list(range(args.count))))
    print(json.dumps({
        "requests": len(results),
        "batches": len(batches),
        "batch_sizes": [len(b) for b in batches],
        "elapsed_ms": round(elapsed_ms, 1),
    }, indent=2))


def main(argv: Optional[List[str]] = None):
    settings = get_settings()
    configure_logging(settings.logging)
    defaults = settings.batching

    parser = argparse.ArgumentParser(
        description="batching-future - coalesce requests into batched computations"
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    def add_threshold_args(p):
        p.add_argument("--max-batch-size", type=int, default=defaults.max_batch_size,
                       help="Flush at this many queued requests (0 disables)")
        p.add_argument("--max-wait-ms", type=int, default=defaults.max_wait_ms,
                       help="Flush this long after the first request (0 disables)")
        p.add_argument("--cache-size", type=int, default=defaults.cache_size,
                       help="LRU cache capacity (0 disables)")

    # demo
    p_demo = subparsers.add_parser("demo", help="Double inputs in batches")
    p_demo.add_argument("--inputs", type=int, nargs="+", default=[4, 6, 8])
    add_threshold_args(p_demo)

    # bench
    p_bench = subparsers.add_parser("bench", help="Report batch formation")
    p_bench.add_argument("--count", type=int, default=12)
    add_threshold_args(p_bench)

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    commands = {
        "demo": cmd_demo,
        "bench": cmd_bench,
    }
    try:
        commands[args.command](args)
    except ConfigurationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
