#!/usr/bin/env python3
"""
memsession demo

Creates a session, stores and reads values, lets a short-lived session
expire, and prints the store statistics.

Usage:
    python -m memsession

    # Or with custom config
    MEMSESSION_LOG_LEVEL=DEBUG MEMSESSION_LOG_JSON=false python -m memsession
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from dataclasses import asdict, replace

from memsession.core.config import MemSessionConfig
from memsession.core.types import SessionId
from memsession.observability.logging import LogLevel, setup_logging
from memsession.session.store import SessionStore


async def demo(config: MemSessionConfig, expiry_s: float) -> None:
    print("\n" + "=" * 60)
    print("memsession - in-process session store demo")
    print("=" * 60 + "\n")

    store_config = replace(config.store, sweep_period_s=expiry_s)
    async with SessionStore(store_config) as store:
        sid = SessionId.generate()
        session = (await store.create(sid, ttl=60)).unwrap()
        print(f"✓ Created session {sid} (ttl={session.ttl_seconds:.0f}s)")

        await session.set("user", "ada")
        await session.set("visits", 1)
        user = (await session.get("user")).unwrap()
        print(f"✓ Stored and read back user={user!r}")

        collision = await store.create(sid)
        print(f"✓ Second create refused: {collision.error}")

        short = SessionId.generate()
        (await store.create(short, ttl=expiry_s / 4)).unwrap()
        print(f"  Waiting {expiry_s * 1.5:.1f}s for session {short} to expire...")
        await asyncio.sleep(expiry_s * 1.5)
        gone = await store.restore(short)
        print(f"✓ Short session gone: {gone.error}")

        await store.destroy(sid)
        await store.destroy(sid)
        print("✓ Destroyed main session (twice, idempotent)")

        print(f"\nStats: {asdict(store.stats)}")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="memsession", description=__doc__)
    parser.add_argument(
        "--expiry", type=float, default=1.0,
        help="sweep period used by the demo, in seconds (default: 1.0)",
    )
    args = parser.parse_args(argv)

    config_result = MemSessionConfig.from_env()
    if config_result.is_err():
        print(f"Configuration error: {config_result.error}")
        return 1
    config = config_result.unwrap()

    validation = config.validate()
    if validation.is_err():
        print(f"Validation error: {validation.error}")
        return 1

    setup_logging(
        LogLevel.from_name(config.observability.log_level),
        json_output=config.observability.log_json,
    )
    asyncio.run(demo(config, args.expiry))
    return 0


if __name__ == "__main__":
    sys.exit(main())
