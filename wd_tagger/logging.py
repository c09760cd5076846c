"""
Logging configuration for the WD tagger.
"""

import logging
from typing import Optional
from rich.logging import RichHandler
from .config import settings


def setup_logging(level: Optional[str] = None) -> None:
    """Configure clean, simple logging output."""

    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, level or settings.log_level),
        handlers=[RichHandler(
            rich_tracebacks=True,
            show_time=True,
            show_path=False,
            show_level=False,
            markup=True
        )],
        force=True  # Override any existing configuration
    )

    # Silence noisy third-party loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("PIL").setLevel(logging.WARNING)

    # Silence model runtime loggers
    logging.getLogger("onnxruntime").setLevel(logging.WARNING)
    logging.getLogger("huggingface_hub").setLevel(logging.WARNING)
    logging.getLogger("filelock").setLevel(logging.WARNING)


def get_logger(name: str):
    """Get a standard logger instance."""
    return logging.getLogger(f"wd_tagger.{name}")
