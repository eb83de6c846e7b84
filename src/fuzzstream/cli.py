#!/usr/bin/env python3
# -*- coding: utf-8 -*-
import argparse
import asyncio
import hashlib
import os
import random
import sys
import time
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from fuzzstream.config import FuzzConfig, NO_DELAY_DISTRIBUTION, config_from_env, load_config
from fuzzstream.errors import FuzzStreamError
from fuzzstream.logging_config import configure_console_logging, setup_json_logging
from fuzzstream.metrics import EmissionCollector
from fuzzstream.stream import FuzzStream, pipe

READ_SIZE = 64 * 1024

DEMO_WRITES = [
    "What a piece of work is man. ",
    "How noble in reason, how infinite in faculty, ",
    "in action how like an angel, ",
    "in apprehension how like a god!",
    "",
]
DEMO_END = "End transmission."


def build_config(args: argparse.Namespace) -> FuzzConfig:
    """Resolve configuration from --config, the environment and --no-delay."""
    base = load_config(args.config) if args.config else None
    config = config_from_env(base)
    if args.no_delay:
        config = config.with_overrides(
            delay_distribution=[d.model_dump() for d in NO_DELAY_DISTRIBUTION]
        )
    return config


def build_rng(args: argparse.Namespace) -> random.Random:
    return random.Random(args.seed)


async def run_demo(args: argparse.Namespace) -> int:
    """Write a short text in several writes and print each chunk as it arrives."""
    config = build_config(args)
    stream = FuzzStream(config=config, rng=build_rng(args))
    start = time.monotonic()

    def elapsed_ms() -> int:
        return int((time.monotonic() - start) * 1000)

    async def produce():
        for text in DEMO_WRITES:
            await stream.write(text.encode("utf-8"))
        await stream.end(DEMO_END.encode("utf-8"))

    print(f"{elapsed_ms()}ms: start")
    writer = asyncio.create_task(produce())
    async for chunk in stream:
        print(f'{elapsed_ms()}ms: "{chunk.decode("utf-8", errors="replace")}"')
    await writer
    print(f"{elapsed_ms()}ms: end")
    return 0


async def run_verify(args: argparse.Namespace) -> int:
    """Pass a file through the stream and compare md5 digests."""
    path = Path(args.path or os.environ.get("SHELL") or sys.executable)
    if not path.is_file():
        print(f"not a file: {path}", file=sys.stderr)
        return 2

    config = build_config(args)
    collector = EmissionCollector()
    stream = FuzzStream(config=config, rng=build_rng(args), collector=collector)

    raw_md5 = hashlib.md5()
    raw_chunks = 0
    raw_bytes = 0

    def read_file():
        nonlocal raw_chunks, raw_bytes
        with open(path, "rb") as f:
            while True:
                block = f.read(READ_SIZE)
                if not block:
                    return
                raw_chunks += 1
                raw_bytes += len(block)
                raw_md5.update(block)
                yield block

    fuzz_md5 = hashlib.md5()
    fuzz_chunks = 0
    fuzz_bytes = 0

    print(f'using test file "{path}"', file=sys.stderr)
    start = time.monotonic()
    writer = asyncio.create_task(pipe(read_file(), stream))
    async for chunk in stream:
        fuzz_chunks += 1
        fuzz_bytes += len(chunk)
        fuzz_md5.update(chunk)
    await writer

    raw_hash = raw_md5.hexdigest()
    fuzz_hash = fuzz_md5.hexdigest()
    print(f"elapsed time: {int((time.monotonic() - start) * 1000)} ms", file=sys.stderr)
    print(f" raw nchunks: {raw_chunks}", file=sys.stderr)
    print(f" raw   bytes: {raw_bytes}", file=sys.stderr)
    print(f" raw     md5: {raw_hash}", file=sys.stderr)
    print(f"fuzz nchunks: {fuzz_chunks}", file=sys.stderr)
    print(f"fuzz   bytes: {fuzz_bytes}", file=sys.stderr)
    print(f"fuzz     md5: {fuzz_hash}", file=sys.stderr)

    if args.csv:
        collector.export_csv(args.csv)

    if raw_hash != fuzz_hash or raw_bytes != fuzz_bytes:
        print("TEST FAILED: md5sum mismatch", file=sys.stderr)
        return 1
    print("md5sum matched", file=sys.stderr)
    print("TEST PASSED", file=sys.stderr)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fuzzstream",
        description="Re-chunk and delay a byte stream to shake out consumer bugs",
    )
    parser.add_argument("--seed", type=int, help="Seed for reproducible runs")
    parser.add_argument("--config", help="YAML or JSON configuration file")
    parser.add_argument("--no-delay", action="store_true",
                        help="Keep re-chunking but never wait before a chunk")
    parser.add_argument("--log-level", default="WARNING",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
    parser.add_argument("--json-logs", action="store_true", help="Emit JSON log lines")

    sub = parser.add_subparsers(dest="command")
    sub.add_parser("demo", help="Stream a short text and print each chunk")

    vp = sub.add_parser("verify", help="Pass a file through and compare md5 digests")
    vp.add_argument("path", nargs="?", help="File to stream (default: $SHELL)")
    vp.add_argument("--csv", help="Export per-chunk records to this CSV file")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.json_logs:
        setup_json_logging(log_level=args.log_level)
    else:
        configure_console_logging(log_level=args.log_level)

    if args.command == "demo":
        runner = run_demo
    elif args.command == "verify":
        runner = run_verify
    else:
        parser.print_help()
        return 2

    try:
        return asyncio.run(runner(args))
    except FuzzStreamError as e:
        print(f"fuzzstream: {e.message}", file=sys.stderr)
        return 3
    except ValidationError as e:
        print(f"fuzzstream: invalid configuration\n{e}", file=sys.stderr)
        return 3


if __name__ == "__main__":
    sys.exit(main())
