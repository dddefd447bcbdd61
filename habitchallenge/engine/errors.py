"""
habitchallenge.engine.errors — Service Error Taxonomy
======================================================

Every rule check in the services fails fast with one of these kinds.  The
HTTP layer maps each kind to a stable status family
(:mod:`habitchallenge.api.errors`); the scheduler logs them per challenge.
"""

from __future__ import annotations


class ChallengeError(Exception):
    """Base class for every business-rule failure."""


class NotFoundError(ChallengeError):
    """The referenced entity does not exist (or is not visible)."""


class ForbiddenError(ChallengeError):
    """The caller lacks the leader or member role the action requires."""


class InvalidStateError(ChallengeError):
    """The entity is not in the state required for the transition."""


class ConflictError(ChallengeError):
    """A uniqueness rule would be violated."""


class CapacityExceededError(ChallengeError):
    """The challenge already holds ``max_members`` joined members."""


class ValidationError(ChallengeError):
    """Malformed or out-of-range input."""
