"""Logger hierarchy and console/file setup for reqgraph."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List

from .diagnostics import Issue, IssueSeverity, count_by_severity

_ROOT_LOGGER = "reqgraph"
_CONSOLE_FORMAT = "[reqgraph] %(levelname)s %(message)s"
_FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def get_logger(name: str | None = None) -> logging.Logger:
    """Return the ``reqgraph`` logger or one of its children, e.g. ``reqgraph.taggers.ctags``."""
    return logging.getLogger(f"{_ROOT_LOGGER}.{name}" if name else _ROOT_LOGGER)


def configure_logging(
    *, verbose: bool = False, quiet: bool = False, log_file: Path | None = None
) -> logging.Logger:
    """Send reqgraph log records to stderr and, optionally, to ``log_file``.

    ``verbose`` enables DEBUG output such as executed tagger commands; ``quiet``
    keeps only warnings and errors. Calling this again replaces the handlers
    installed by the previous call.
    """
    if verbose and quiet:
        raise ValueError("verbose and quiet logging are mutually exclusive")
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    else:
        level = logging.INFO

    logger = logging.getLogger(_ROOT_LOGGER)
    logger.setLevel(level)
    logger.propagate = False
    while logger.handlers:
        handler = logger.handlers[0]
        logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler()
    console.setFormatter(logging.Formatter(_CONSOLE_FORMAT))
    handlers: List[logging.Handler] = [console]
    if log_file is not None:
        sink = logging.FileHandler(log_file, encoding="utf-8")
        sink.setFormatter(logging.Formatter(_FILE_FORMAT))
        handlers.append(sink)
    for handler in handlers:
        handler.setLevel(level)
        logger.addHandler(handler)
    return logger


def log_issue_summary(logger: logging.Logger, issues: Iterable[Issue]) -> None:
    """Log the issue count per severity, then each Major issue as a warning."""
    issues = list(issues)
    counts = count_by_severity(issues)
    logger.info(
        "Found %d issues: %s",
        len(issues),
        ", ".join(f"{counts[severity]} {severity.value}" for severity in IssueSeverity),
    )
    for issue in issues:
        if issue.severity is IssueSeverity.MAJOR:
            logger.warning("%s:%d: %s", issue.path or issue.repo_name, issue.line, issue.description)


__all__ = ["configure_logging", "get_logger", "log_issue_summary"]
