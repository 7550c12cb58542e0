"""Build tools for gapilib development and release."""

from .quality import run_all_checks, QUALITY_CHECKS
from .tox import rebuild_tox_environments, clean_text_output, summarize_tox_output

__all__ = [
    "run_all_checks",
    "QUALITY_CHECKS",
    "rebuild_tox_environments",
    "clean_text_output",
    "summarize_tox_output",
]
