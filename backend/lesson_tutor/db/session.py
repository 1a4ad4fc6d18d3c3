from __future__ import annotations

from typing import Any, Dict, Iterator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from lesson_tutor.core.config import settings


def _engine_kwargs(url: str) -> Dict[str, Any]:
    kwargs: Dict[str, Any] = {"pool_pre_ping": True}
    if url.startswith("sqlite"):
        # FastAPI runs sync handlers on a thread pool.
        kwargs["connect_args"] = {"check_same_thread": False}
        return kwargs

    kwargs["pool_timeout"] = int(settings.DB_POOL_TIMEOUT_SEC)
    if url.startswith("postgresql"):
        kwargs["connect_args"] = {"options": f"-c statement_timeout={int(settings.DB_STATEMENT_TIMEOUT_MS)}"}
    return kwargs


engine = create_engine(settings.DATABASE_URL, **_engine_kwargs(settings.DATABASE_URL))
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def get_db() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
