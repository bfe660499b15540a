from __future__ import annotations


class InvalidWindowConfig(ValueError):
    """Malformed risk/control window geometry."""


class BoundaryComputationError(RuntimeError):
    """The exact spending boundary could not be computed.

    Fatal for a surveillance run: a silently wrong boundary would void the
    Type-I error guarantee, so callers must not retry or continue.
    """


class ConfidenceIntervalWarning(UserWarning):
    """The sequential-adjusted interval could not be bracketed."""
