"""
Run the reference task store service.

Usage:
    python -m task_cache.api [--host 127.0.0.1] [--port 8000]
"""
from __future__ import annotations

import argparse

import uvicorn

from ..logging_setup import setup_logging
from ..settings import get_settings


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(description="Reference task store with a change feed")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    args = parser.parse_args(argv)

    settings = get_settings()
    setup_logging(console_level=settings.log_level, log_dir=settings.log_dir)
    uvicorn.run("task_cache.api.main:app", host=args.host, port=args.port, log_config=None)


if __name__ == "__main__":
    main()
