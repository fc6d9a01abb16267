"""Transaction scope and relational primitives shared by the services.

Every service function that performs more than one write runs inside
:func:`atomic`. Nested blocks join the outermost one, so a service can call
another service without committing half of its work.
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager

from flask import current_app, g
from sqlalchemy import event, insert
from sqlalchemy.engine import Engine
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from pagemark.extensions import db
from pagemark.services.errors import (
    Conflict,
    Forbidden,
    InvalidArgument,
    NotFound,
    ServiceError,
    TransactionFailure,
)


# Presentation-only folder meaning "pages without any folder"; never a row.
VIRTUAL_FOLDER_ID = "uncategorized"

_INSERT_IGNORE_DIALECTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}

# SQLite only folds ASCII in LIKE; searches compare through this function instead.
CASEFOLD_FUNCTION = "pagemark_casefold"


def _casefold(value):
    if value is None:
        return None
    return str(value).casefold()


@event.listens_for(Engine, "connect")
def _configure_sqlite_connection(dbapi_connection, connection_record):
    if not isinstance(dbapi_connection, sqlite3.Connection):
        return
    dbapi_connection.create_function(CASEFOLD_FUNCTION, 1, _casefold, deterministic=True)


@event.listens_for(Engine, "begin")
def _begin_sqlite_transaction(conn):
    # Take the write lock up front so concurrent writers queue on the busy
    # timeout instead of failing on a read-to-write lock upgrade.
    if conn.dialect.name != "sqlite":
        return
    if conn.engine.url.database in (None, "", ":memory:"):
        return
    conn.exec_driver_sql("BEGIN IMMEDIATE")


@contextmanager
def atomic(conflict_message: str = "the change conflicts with existing data"):
    depth = g.get("_atomic_depth", 0)
    g._atomic_depth = depth + 1
    outermost = depth == 0
    try:
        yield db.session
        if outermost:
            db.session.commit()
    except ServiceError:
        if outermost:
            db.session.rollback()
        raise
    except IntegrityError as exc:
        if outermost:
            db.session.rollback()
        raise Conflict(conflict_message) from exc
    except SQLAlchemyError as exc:
        if outermost:
            db.session.rollback()
        current_app.logger.exception("store transaction failed")
        raise TransactionFailure("internal error") from exc
    except Exception:
        if outermost:
            db.session.rollback()
        raise
    finally:
        g._atomic_depth = depth


def insert_ignore(table, rows) -> int:
    """Insert ``rows`` into ``table``, skipping rows that hit a unique key.

    Returns the number of rows actually inserted.
    """
    rows = list(rows)
    if not rows:
        return 0

    db.session.flush()
    dialect_insert = _INSERT_IGNORE_DIALECTS.get(db.engine.dialect.name)
    if dialect_insert is not None:
        stmt = dialect_insert(table).values(rows).on_conflict_do_nothing()
        result = db.session.execute(stmt)
        return max(result.rowcount or 0, 0)

    inserted = 0
    for row in rows:
        try:
            with db.session.begin_nested():
                db.session.execute(insert(table).values(**row))
        except IntegrityError:
            continue
        inserted += 1
    return inserted


def parse_id(value, label: str) -> int:
    if isinstance(value, bool):
        raise InvalidArgument(f"{label} id is not valid")
    if isinstance(value, str):
        value = value.strip()
        if value == VIRTUAL_FOLDER_ID and label == "folder":
            raise InvalidArgument(
                f"'{VIRTUAL_FOLDER_ID}' is not a real {label} and cannot be changed"
            )
    if isinstance(value, str) and value.isascii() and value.isdigit():
        parsed = int(value)
    elif isinstance(value, int):
        parsed = value
    else:
        raise InvalidArgument(f"{label} id is not valid")
    if parsed <= 0:
        raise InvalidArgument(f"{label} id is not valid")
    return parsed


def get_owned(model, user_id: int, entity_id, label: str):
    entity = db.session.get(model, parse_id(entity_id, label))
    if entity is None:
        raise NotFound(f"{label} not found")
    if entity.user_id != user_id:
        raise Forbidden(f"{label} belongs to another user")
    return entity
