"""
Error types and warning helpers for the prerender pipeline.
"""

import logging
from typing import Set

logger = logging.getLogger('Prerender')

_already_warned: Set[str] = set()


class PrerenderError(Exception):
    """Base class for every error raised by the pipeline."""


class UsageError(PrerenderError):
    """A user or caller contract violation. Aborts the whole run."""


class HookError(PrerenderError):
    """A user hook, page file or route function raised while being called."""


def raise_hook_error(err, source=None):
    """Wrap an upstream fault into a HookError and raise it.

    Exceptions are chained with ``from`` so the original traceback is kept.
    Anything else (a router handing back a bare value) is wrapped by repr.
    """
    where = f" in {source}" if source else ""
    if isinstance(err, BaseException):
        raise HookError(f"Hook failed{where}: {err!r}") from err
    raise HookError(f"Hook failed{where}: {err!r}")


def warn_once(message: str) -> bool:
    """Log ``message`` as a warning unless it was already logged.

    Returns True if the warning was emitted.
    """
    if message in _already_warned:
        return False
    _already_warned.add(message)
    logger.warning(message)
    return True


def reset_warnings() -> None:
    """Forget which warnings were already emitted."""
    _already_warned.clear()
