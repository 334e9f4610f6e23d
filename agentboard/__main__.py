"""CLI entry point -- python -m agentboard."""
from __future__ import annotations

import argparse
import logging
import os
import sys

from agentboard import __version__
from agentboard.config import get_config, reset_config


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="agentboard",
        description="agentboard -- track agent lifecycles from tool-use hook events.",
    )
    p.add_argument("--version", action="version", version=f"agentboard {__version__}")
    p.add_argument("--host", help="Listen address (default: 127.0.0.1)")
    p.add_argument("--port", type=int, help="Listen port (default: 8787)")
    p.add_argument("--state-file", help="Snapshot file path (default: ~/.agentboard/state.json)")
    p.add_argument("--log-level", help="Log level (default: INFO)")
    return p


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    # CLI flags override the environment; config reads the environment.
    overrides = {
        "AGENTBOARD_HOST": args.host,
        "AGENTBOARD_PORT": str(args.port) if args.port else None,
        "AGENTBOARD_STATE_FILE": args.state_file,
        "AGENTBOARD_LOG_LEVEL": args.log_level,
    }
    for key, value in overrides.items():
        if value:
            os.environ[key] = value
    reset_config()
    cfg = get_config()

    import uvicorn

    from agentboard.api.app import create_app

    logging.getLogger().setLevel(cfg.log_level.upper())
    uvicorn.run(
        create_app(),
        host=cfg.host,
        port=cfg.port,
        log_level=cfg.log_level.lower(),
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
