import logging

from models import db

logger = logging.getLogger(__name__)


def run_isolated(name: str, fn, *args, attempts: int = 1, **kwargs):
    """
    Run a post-commit side effect without letting it fail the caller.

    Each failed attempt rolls the session back so a half-written side
    effect never leaks into the next commit. Returns the callable's result,
    or None once every attempt has failed.
    """
    for attempt in range(1, max(attempts, 1) + 1):
        try:
            return fn(*args, **kwargs)
        except Exception:
            db.session.rollback()
            logger.exception("Side effect %s failed (attempt %s/%s)", name, attempt, attempts)
    return None
