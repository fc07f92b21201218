from __future__ import annotations

from collections.abc import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine.url import make_url
from sqlalchemy.orm import Session, sessionmaker

from document_analyzer.core.config import settings

_url = make_url(settings.database_url)
_connect_args: dict = {}
if _url.drivername.startswith("sqlite"):
    # FastAPI runs sync dependencies in a threadpool
    _connect_args = {"check_same_thread": False}

engine = create_engine(settings.database_url, pool_pre_ping=True, connect_args=_connect_args)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


def db_session() -> Generator[Session, None, None]:
    with SessionLocal() as session:
        yield session
