"""
Local runner for the Gmail integration endpoint.

    python devserver.py --port 54321
    curl -X POST -H "Authorization: Bearer <supabase jwt>" http://127.0.0.1:54321/test-gmail-integration
"""
from __future__ import annotations

import argparse
import os
from typing import List, Optional

import uvicorn

from app import FUNCTIONS_PROBE_PATH, PROBE_PATH
from logging_utils import configure_logging

HOST_ENV_VAR = "NEWSLETTER_PROBE_DEV_HOST"
PORT_ENV_VAR = "NEWSLETTER_PROBE_DEV_PORT"
RELOAD_ENV_VAR = "NEWSLETTER_PROBE_DEV_RELOAD"
LOG_LEVEL_ENV_VAR = "NEWSLETTER_PROBE_DEV_LOG_LEVEL"
DEFAULT_PORT = 54321


def _reload_default() -> bool:
    return os.getenv(RELOAD_ENV_VAR, "1").strip().lower() in {"1", "true", "yes", "on"}


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Serve the Gmail integration endpoint locally.")
    parser.add_argument("--host", default=os.getenv(HOST_ENV_VAR, "127.0.0.1"))
    parser.add_argument("--port", type=int, default=int(os.getenv(PORT_ENV_VAR, str(DEFAULT_PORT))))
    parser.add_argument(
        "--no-reload",
        dest="reload",
        action="store_false",
        default=_reload_default(),
        help="Do not restart the server when source files change",
    )
    parser.add_argument("--log-level", default=os.getenv(LOG_LEVEL_ENV_VAR, "info"))
    return parser.parse_args(argv)


def endpoint_urls(host: str, port: int) -> List[str]:
    return [f"http://{host}:{port}{path}" for path in (PROBE_PATH, FUNCTIONS_PROBE_PATH)]


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    log_path = configure_logging()
    if log_path:
        print(f"Logging to {log_path}")
    for url in endpoint_urls(args.host, args.port):
        print(f"Gmail integration check: {url}")

    uvicorn.run(
        "app:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=args.log_level,
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
