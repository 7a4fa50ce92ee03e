"""Persisted sessions: resume a plan and a TDD cycle after interruption."""

from gatekeep.session.session import Session
from gatekeep.session.store import SessionStore

__all__ = ["Session", "SessionStore"]
