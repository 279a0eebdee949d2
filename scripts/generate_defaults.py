#!/usr/bin/env python3
"""Generate the bundled default dataset from a seed file.

The seed is a JSON list of layers, each with an ``entities`` list of OSM
lookup ids (``"R62422"``) or place names. Every entity is resolved through
Nominatim (1 request/second) and the result is written as a
``{layers, groups}`` document.

Usage:
    python scripts/generate_defaults.py SEED [--output PATH] [--delay SECONDS]
"""
from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path

from loguru import logger

from highlighter.config import settings
from highlighter.geocode import NominatimGateway
from highlighter.geocode.seed import build_default_dataset


async def _run(args: argparse.Namespace) -> int:
    with open(args.seed, encoding="utf-8") as f:
        seed = json.load(f)
    if not isinstance(seed, list):
        logger.error("Seed file must contain a list of layers")
        return 1
    gateway = NominatimGateway(
        base_url=settings.nominatim_url,
        user_agent=settings.user_agent,
        timeout=settings.geocode_timeout,
    )
    dataset = await build_default_dataset(seed, gateway, delay=args.delay)
    args.output.parent.mkdir(parents=True, exist_ok=True)
    args.output.write_text(json.dumps(dataset, indent=2), encoding="utf-8")
    logger.info(f"Default dataset written to {args.output}")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Generate the default layer dataset")
    parser.add_argument("seed", type=Path, help="Seed JSON (layers with entity ids)")
    parser.add_argument("--output", type=Path, default=settings.default_dataset_path, help="Output path")
    parser.add_argument("--delay", type=float, default=settings.refetch_delay, help="Seconds between requests")
    return asyncio.run(_run(parser.parse_args()))


if __name__ == "__main__":
    sys.exit(main())
