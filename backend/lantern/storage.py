"""Persistence façade over Flask-SQLAlchemy.

Every lantern service reads and writes through these helpers. Each write
commits on its own, mirroring a document store where one call touches one
record. Conditional updates are a single ``UPDATE ... WHERE`` so the row
count tells the caller whether its guard matched.
"""

from typing import Any, Callable, Dict, Iterable, List, Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from lantern import db
from lantern.errors import Conflict, NotFound, StorageFailure


def _storage_failure(action: str, exc: Exception) -> StorageFailure:
    db.session.rollback()
    current_app.logger.exception(f"[storage-fail] action={action} error={exc}")
    return StorageFailure(f'{action} failed')


def _query(model, criteria: Iterable = (), filters: Optional[Dict[str, Any]] = None):
    query = model.query
    criteria = list(criteria)
    if criteria:
        query = query.filter(*criteria)
    if filters:
        query = query.filter_by(**filters)
    return query


def find_object(model, criteria: Iterable = (), **filters):
    """Return the first matching row or None."""
    try:
        return _query(model, criteria, filters).first()
    except SQLAlchemyError as exc:
        raise _storage_failure(f'find {model.__tablename__}', exc) from exc


def get_object(model, name: str, criteria: Iterable = (), **filters):
    obj = find_object(model, criteria, **filters)
    if obj is None:
        raise NotFound(name)
    return obj


def get_objects(model, criteria: Iterable = (), order_by=None, **filters) -> List[Any]:
    try:
        query = _query(model, criteria, filters)
        if order_by is not None:
            query = query.order_by(order_by)
        return query.all()
    except SQLAlchemyError as exc:
        raise _storage_failure(f'list {model.__tablename__}', exc) from exc


def does_exist(model, criteria: Iterable = (), **filters) -> bool:
    return find_object(model, criteria, **filters) is not None


def create_object(obj, name: str, unique_criteria: Iterable = ()):
    """Insert ``obj`` unless a row matches any of ``unique_criteria``.

    The pre-check gives a readable Conflict; the table's unique constraints
    still have the last word when two inserts race.
    """
    model = type(obj)
    for criterion in unique_criteria:
        if does_exist(model, [criterion]):
            raise Conflict(name)
    try:
        db.session.add(obj)
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        current_app.logger.info(f"[storage-conflict] table={model.__tablename__} name={name}")
        raise Conflict(name) from exc
    except SQLAlchemyError as exc:
        raise _storage_failure(f'create {model.__tablename__}', exc) from exc
    return obj


def update_objects(model, values: Dict[Any, Any], criteria: Iterable = (), **filters) -> int:
    """Apply ``values`` to every matching row. Returns the matched row count."""
    try:
        count = _query(model, criteria, filters).update(values, synchronize_session=False)
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise Conflict(model.__tablename__) from exc
    except SQLAlchemyError as exc:
        raise _storage_failure(f'update {model.__tablename__}', exc) from exc
    return count


def update_object(model, name: str, values: Dict[Any, Any], guard: Dict[str, Any],
                  criteria: Iterable = (), lookup: Optional[Dict[str, Any]] = None):
    """Guarded single-row update. Raises NotFound when the guard matches nothing.

    ``lookup`` re-reads the row afterwards; it defaults to ``guard``, which
    only works when the update does not touch the guarded columns.
    """
    if not update_objects(model, values, criteria, **guard):
        raise NotFound(name)
    return get_object(model, name, **(lookup if lookup is not None else guard))


def modify_object(model, name: str, mutate: Callable[[Any], None], **filters):
    """Lock one row, let ``mutate`` change it in place, then commit.

    For changes a plain UPDATE cannot express, such as set-adding into a
    JSON list. The row lock serialises concurrent writers where the database
    supports ``SELECT ... FOR UPDATE``.
    """
    try:
        obj = _query(model, (), filters).with_for_update().first()
        if obj is None:
            db.session.rollback()
            raise NotFound(name)
        mutate(obj)
        db.session.commit()
    except SQLAlchemyError as exc:
        raise _storage_failure(f'modify {model.__tablename__}', exc) from exc
    return obj


def remove_objects(model, criteria: Iterable = (), **filters) -> int:
    try:
        count = _query(model, criteria, filters).delete(synchronize_session=False)
        db.session.commit()
    except SQLAlchemyError as exc:
        raise _storage_failure(f'remove {model.__tablename__}', exc) from exc
    return count
