from collections.abc import Generator

from .session import SessionLocalLoan


def get_loan_db() -> Generator:
    db = SessionLocalLoan()
    try:
        yield db
    finally:
        db.close()


def get_loan_session_factory():
    return SessionLocalLoan
