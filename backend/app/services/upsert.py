"""
Upsert helpers - atomic insert-or-update against unique constraints.

Every importer writes through these helpers instead of querying for an
existing row first. The database resolves the conflict inside a single
INSERT ... ON CONFLICT statement, so two requests importing the same
meeting at the same time cannot both insert it.

Supports the two backends the application runs on (see app.database):
PostgreSQL in production and SQLite for local development and tests.
"""

from typing import Iterable, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from app.logging_config import get_logger, log_with_context

logger = get_logger("db")

DIALECT_INSERTS = {
    "postgresql": postgresql_insert,
    "sqlite": sqlite_insert,
}


def _insert_for(db: Session, model):
    dialect = db.get_bind().dialect.name
    if dialect not in DIALECT_INSERTS:
        raise NotImplementedError("Upsert is not supported on the '{}' dialect".format(dialect))
    return DIALECT_INSERTS[dialect](model)


def upsert(db: Session, model, values: dict, conflict_columns: Sequence[str],
           update_columns: Iterable[str] = (), keep_existing_if_null: Iterable[str] = ()) -> int:
    """
    Insert a row, or resolve a unique-key conflict in the database.

    Args:
        db: Database session (the statement joins its transaction)
        model: ORM class to write
        values: Column values for the insert
        conflict_columns: Columns of the unique constraint that identifies the row
        update_columns: Columns overwritten from `values` when the row exists;
            when empty, an existing row is left untouched
        keep_existing_if_null: Subset of update_columns where a NULL incoming
            value keeps the stored one

    Returns:
        Number of rows inserted or updated (0 when an existing row was kept)
    """
    stmt = _insert_for(db, model).values(**values)
    update_columns = list(update_columns)
    keep_existing = set(keep_existing_if_null)

    if update_columns:
        table_columns = model.__table__.c
        set_ = {}
        for name in update_columns:
            if name in keep_existing:
                set_[name] = func.coalesce(stmt.excluded[name], table_columns[name])
            else:
                set_[name] = stmt.excluded[name]
        stmt = stmt.on_conflict_do_update(index_elements=list(conflict_columns), set_=set_)
    else:
        stmt = stmt.on_conflict_do_nothing(index_elements=list(conflict_columns))

    result = db.execute(stmt)
    log_with_context(logger, "DEBUG", "Upserted {}".format(model.__tablename__),
                     context={key: values.get(key) for key in conflict_columns},
                     extra_data={"rowcount": result.rowcount})
    return result.rowcount


def fetch_id(db: Session, model, id_column: str = "id", **criteria) -> Optional[str]:
    """Read back the primary key of the row identified by its unique columns."""
    column = getattr(model, id_column)
    stmt = select(column).filter_by(**criteria)
    return db.execute(stmt).scalar_one_or_none()
