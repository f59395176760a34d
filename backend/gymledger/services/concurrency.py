# Overview: Transaction and optimistic-concurrency helpers shared by ledger writes.

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator

from sqlalchemy import update

from ..extensions import db


@contextmanager
def atomic() -> Iterator[Any]:
    """
    Scoped unit of work: commit on normal exit, roll back on any exception.

    Every write performed inside the block (inserts flushed by the ORM and
    Core UPDATEs alike) commits together or not at all.
    """
    try:
        yield db.session
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise


def conditional_update(model, *, where: dict, values: dict) -> int:
    """
    UPDATE `model` SET values WHERE every `where` column equals its value.

    Returns the affected row count. With a version column in `where` this is
    a compare-and-swap: 0 means another writer changed the row first.
    """
    stmt = update(model)
    for column_name, expected in where.items():
        stmt = stmt.where(getattr(model, column_name) == expected)
    stmt = stmt.values(**values).execution_options(synchronize_session=False)
    result = db.session.execute(stmt)
    return result.rowcount
