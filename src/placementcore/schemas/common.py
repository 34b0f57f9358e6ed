"""Shared helpers for schema defaults."""

from __future__ import annotations

from uuid import uuid4

import pendulum


def new_id() -> str:
    """Return a fresh opaque document identifier."""
    return uuid4().hex


def utcnow() -> pendulum.DateTime:
    return pendulum.now("UTC")
