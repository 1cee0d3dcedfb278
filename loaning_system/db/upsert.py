from sqlalchemy import Table
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session


_INSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def dialect_insert(db: Session, table: Table):
    """Build an INSERT that supports ON CONFLICT for the session's database."""
    dialect = db.get_bind().dialect.name
    insert_factory = _INSERT_DIALECTS.get(dialect)
    if insert_factory is None:
        raise RuntimeError(f"ON CONFLICT inserts are not supported for dialect {dialect}")
    return insert_factory(table)
