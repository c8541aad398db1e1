#!/usr/bin/env python3
"""Run the rewriting proxy with uvicorn.

Usage:
  python backend/bin/serve_proxy.py [--host 0.0.0.0] [--port 80] [--log-level info]

Settings are read from PAGEPROXY_* environment variables, a .env file or a
config.json in the working directory (see pageproxy.core.config). The server
refuses to start when `log_requests` is missing or not a boolean.
"""
from __future__ import annotations

import argparse
import logging


def main() -> int:
    ap = argparse.ArgumentParser(description="Run the rewriting proxy")
    ap.add_argument("--host", default="0.0.0.0", help="Interface to bind")
    ap.add_argument("--port", type=int, default=80, help="Port to listen on")
    ap.add_argument(
        "--log-level",
        default="info",
        choices=["debug", "info", "warning", "error"],
        help="Root log level",
    )
    args = ap.parse_args()

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    from pydantic import ValidationError

    from pageproxy.core.config import get_settings

    try:
        get_settings()
    except ValidationError as exc:
        print("FATAL: invalid proxy configuration:", exc)
        return 1

    import uvicorn

    uvicorn.run(
        "pageproxy.main:app",
        host=args.host,
        port=args.port,
        log_level=args.log_level,
        proxy_headers=True,
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
