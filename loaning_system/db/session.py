import os

from .factory import build_engine, build_session_factory


def _require_env(name: str) -> str:
    value = os.environ.get(name)
    if not value:
        raise RuntimeError(f"Missing required environment variable: {name}")
    return value


LOANING_DB_URL = _require_env("LOANING_DB_URL")

engine_loan = build_engine(LOANING_DB_URL)

SessionLocalLoan = build_session_factory(engine_loan)
