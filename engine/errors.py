"""
engine/errors.py - exception hierarchy for the match/pass/session engine.

Every error raised by the engine or a store derives from MatchPassError so
handlers can catch the whole family in one place.
"""


class MatchPassError(Exception):
    """Base exception for all engine errors."""
    pass


class ValidationError(MatchPassError):
    """Malformed input (missing id, out-of-range age). No state was changed."""
    pass


class NotFoundError(MatchPassError):
    """Referenced profile, match or pass does not exist."""
    pass


class ConflictError(MatchPassError):
    """A conditional write lost against a concurrent writer."""
    pass


class StoreUnavailable(MatchPassError):
    """Transient backing-store failure. The caller decides whether to retry."""
    pass


class InvalidTransition(MatchPassError):
    """A match was asked to move along an edge its state machine does not have."""
    pass


class ConfigError(MatchPassError):
    """Invalid or missing configuration at startup."""
    pass
