"""Session gateway used by the async engine components.

The ORM session is synchronous, so every unit of work runs on a worker
thread with its own short-lived session. ``run`` commits on success and
rolls back on error; returned rows stay readable after the session closes.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any, TypeVar

from sqlalchemy.orm import Session, sessionmaker

from app.db import SessionLocal

T = TypeVar("T")


class MonitoringStore:
    def __init__(self, session_factory: sessionmaker | Callable[[], Session] = SessionLocal):
        self._session_factory = session_factory

    def call(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        db = self._session_factory()
        db.expire_on_commit = False
        try:
            result = fn(db, *args, **kwargs)
            db.commit()
            return result
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    async def run(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        return await asyncio.to_thread(self.call, fn, *args, **kwargs)
