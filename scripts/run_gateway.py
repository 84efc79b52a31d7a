"""Runs the gateway session client with repository-relative imports."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Final

EXIT_FATAL: Final[int] = 2


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Connect to the gateway and serve application commands.")
    parser.add_argument(
        "--config",
        default=None,
        help="Path to a YAML/JSON settings file (sets TRADEGATE_CONFIG_FILE).",
    )
    parser.add_argument(
        "--log-level",
        choices=["critical", "error", "warning", "info", "debug"],
        default=None,
        help="Log level (overrides settings/env).",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    repo_root = Path(__file__).resolve().parents[1]
    sys.path.insert(0, str(repo_root))
    if args.config:
        os.environ["TRADEGATE_CONFIG_FILE"] = str(Path(args.config).expanduser().resolve())

    # Lazy import after adjusting sys.path and the config location
    from tradegate.bootstrap import serve_forever  # type: ignore
    from tradegate.config import get_settings  # type: ignore
    from tradegate.errors import FatalGatewayError  # type: ignore

    settings = get_settings()
    level = (args.log_level or settings.log_level).upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    try:
        asyncio.run(serve_forever())
    except FatalGatewayError as exc:
        logging.getLogger("tradegate").critical("Gateway stopped: %s", exc)
        sys.exit(EXIT_FATAL)
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
