"""Download GGUF models from the Hugging Face Hub into the local model cache.

Usage:
    python scripts/download_models.py --model qwen2.5-3b-instruct-q4_k_m
    python scripts/download_models.py --all --models-dir ./models/
    python scripts/download_models.py --list
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from redline.core.config import LLMConfig
from redline.core.logging import configure_logging
from redline.model_providers.in_process_slm import LlamaCppEngine
from redline.models.catalog import DEFAULT_MODEL_ID, SUPPORTED_MODELS

logger = logging.getLogger("redline.scripts.download_models")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Prefetch Redline GGUF models")
    group = parser.add_mutually_exclusive_group()
    group.add_argument("--model", action="append", help="Model id to download (repeatable)")
    group.add_argument("--all", action="store_true", help="Download every catalog model")
    group.add_argument("--list", action="store_true", help="List catalog models and exit")
    parser.add_argument("--models-dir", type=Path, default=None, help="Override the model cache directory")
    parser.add_argument("--log-level", default="INFO")
    return parser.parse_args(argv)


async def download(model_ids: list[str], config: LLMConfig) -> int:
    engine = LlamaCppEngine(config)
    failures = 0
    for model_id in model_ids:
        try:
            path = await engine.prefetch(
                model_id, lambda fraction, text: logger.info("%s (%.0f%%)", text, fraction * 100)
            )
        except Exception as exc:
            logger.error("Failed to download %s: %s", model_id, exc)
            failures += 1
            continue
        logger.info("%s -> %s", model_id, path)
    return failures


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_level)

    if args.list:
        for spec in SUPPORTED_MODELS:
            print(f"{spec.id:<32} {spec.size:>7}  {spec.name}")
        return 0

    config = LLMConfig()
    if args.models_dir is not None:
        config = config.model_copy(update={"models_dir": args.models_dir})

    if args.all:
        model_ids = [spec.id for spec in SUPPORTED_MODELS]
    else:
        model_ids = args.model or [DEFAULT_MODEL_ID]

    failures = asyncio.run(download(model_ids, config))
    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
