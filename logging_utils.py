from __future__ import annotations

import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Optional


LOG_ENV_VAR = "NEWSLETTER_PROBE_ACTIVE_LOG"
LOG_DIR_ENV_VAR = "NEWSLETTER_PROBE_LOG_DIR"
LOG_LEVEL_ENV_VAR = "NEWSLETTER_PROBE_LOG_LEVEL"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# Environment variables set by hosted runtimes where stderr is already collected.
_HOSTED_MARKERS = (
    "K_SERVICE",
    "CLOUD_RUN_SERVICE",
    "CLOUD_RUN_JOB",
    "GAE_SERVICE",
    "SUPABASE_EDGE_RUNTIME",
    "DYNO",
)


def _running_hosted() -> bool:
    return any(os.getenv(marker) for marker in _HOSTED_MARKERS)


def _resolve_level(name: Optional[str]) -> int:
    level = logging.getLevelName((name or "INFO").upper())
    return level if isinstance(level, int) else logging.INFO


def configure_logging() -> Optional[Path]:
    """
    Configure root logging once per process.

    Hosted runtimes log to stderr only. Local runs also write a timestamped
    file, whose path is returned and exported via NEWSLETTER_PROBE_ACTIVE_LOG.
    """
    if getattr(configure_logging, "_configured", False):
        return getattr(configure_logging, "_log_path", None)

    log_path: Optional[Path] = None
    handlers: list[logging.Handler] = [logging.StreamHandler()]

    if not _running_hosted():
        log_dir = Path(os.getenv(LOG_DIR_ENV_VAR, "logs"))
        log_dir.mkdir(parents=True, exist_ok=True)
        log_path = log_dir / f"newsletter_probe_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"
        handlers.append(logging.FileHandler(log_path, mode="w", encoding="utf-8"))

    logging.basicConfig(
        level=_resolve_level(os.getenv(LOG_LEVEL_ENV_VAR)),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )

    if log_path:
        os.environ[LOG_ENV_VAR] = str(log_path)

    configure_logging._configured = True  # type: ignore[attr-defined]
    configure_logging._log_path = log_path  # type: ignore[attr-defined]
    return log_path
