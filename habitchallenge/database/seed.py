"""
habitchallenge.database.seed — Development Seed Data
=====================================================

Inserts the demo users from ``seeds/users.yaml``.  Existing rows (matched by
login id) are left untouched, so running the seed on every start is safe.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from sqlalchemy import Engine, select

from habitchallenge.database.engine import get_session
from habitchallenge.database.models import User

logger = logging.getLogger(__name__)

# Resolve the seeds directory relative to the project root
_SEEDS_DIR = Path(__file__).resolve().parent.parent.parent / "seeds"


def _load_yaml(filename: str) -> Any:
    path = _SEEDS_DIR / filename
    if not path.exists():
        logger.warning("Seed file not found: %s", path)
        return []
    with open(path, encoding="utf-8") as fh:
        return yaml.safe_load(fh) or []


def seed_demo_users(engine: Engine) -> int:
    """Insert missing demo users; return how many were created."""
    created = 0
    with get_session(engine) as session:
        existing = set(session.scalars(select(User.login_id)).all())
        for item in _load_yaml("users.yaml"):
            if item["login_id"] in existing:
                logger.info("Demo user %s already exists — skipping.", item["login_id"])
                continue
            session.add(
                User(
                    login_id=item["login_id"],
                    email=item["email"],
                    nickname=item["nickname"],
                )
            )
            created += 1
    logger.info("Seeded %d demo users.", created)
    return created
