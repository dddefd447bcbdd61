"""
habitchallenge.engine.invite — Invite Code Generation
======================================================
"""

from __future__ import annotations

import secrets

from habitchallenge.constants import INVITE_CODE_ALPHABET, INVITE_CODE_LENGTH


def generate_invite_code(length: int = INVITE_CODE_LENGTH) -> str:
    """Return *length* symbols drawn uniformly from ``[A-Z0-9]``."""
    return "".join(secrets.choice(INVITE_CODE_ALPHABET) for _ in range(length))


def is_valid_invite_code(code: str) -> bool:
    return len(code) == INVITE_CODE_LENGTH and all(c in INVITE_CODE_ALPHABET for c in code)
