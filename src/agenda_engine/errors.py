from __future__ import annotations


class AgendaEngineError(Exception):
    """Base class for errors raised by the agenda engine."""


class ValidationError(AgendaEngineError, ValueError):
    """Malformed input: date keys, view modes, item drafts, routine targets."""


class NotFoundError(AgendaEngineError, LookupError):
    pass


class ConfigurationError(AgendaEngineError):
    """Unsupported or unknown timezone, or other unusable settings."""
