"""Lightweight logging setup for the TUI."""

import logging
import sys
from pathlib import Path
from typing import Optional


def configure_logging(level: int = logging.INFO, log_file: Optional[Path] = None) -> None:
    # The TUI owns the terminal while running, so log to a file when given one.
    kwargs = {"stream": sys.stderr}
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        kwargs = {"filename": str(log_file)}
    logging.basicConfig(
        level=level,
        format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        **kwargs,
    )
