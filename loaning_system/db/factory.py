import os

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker


def _int_env(name: str, default: int) -> int:
    raw = (os.environ.get(name) or "").strip()
    return int(raw) if raw else default


def build_engine(url: str, **kwargs) -> Engine:
    options = {"pool_pre_ping": True, "future": True}
    if not url.startswith("sqlite"):
        options["pool_size"] = _int_env("LOANING_DB_POOL_SIZE", 5)
        options["max_overflow"] = _int_env("LOANING_DB_MAX_OVERFLOW", 10)
    options.update(kwargs)
    return create_engine(url, **options)


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
        future=True,
    )
