# scripts/run_cycle.py
from __future__ import annotations

import argparse
import asyncio
import json
import logging

from sentinel.config import settings
from sentinel.db import engine
from sentinel.models import Base
from sentinel.service_layer.use_cases.cycle import run_ingestion_cycle


async def main() -> None:
    ap = argparse.ArgumentParser(description="Run one ingestion cycle and print per-source counts.")
    ap.add_argument("--counties", nargs="+", default=list(settings.DEFAULT_COUNTIES))
    ap.add_argument("--mode", choices=["narrow", "broad"], default="broad")
    ap.add_argument("--timeout", type=float, default=None, help="per-adapter timeout in seconds")
    args = ap.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(name)s:%(message)s")
    logging.getLogger("httpx").setLevel(logging.WARNING)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    res = await run_ingestion_cycle(args.counties, args.mode, timeout_s=args.timeout)
    print(json.dumps(res.as_dict(), indent=2, default=str))


if __name__ == "__main__":
    asyncio.run(main())
