"""
Helpers shared by the service modules: enum parsing, lookups, transactions.
"""

import logging
from contextlib import contextmanager
from typing import Iterator, Type, TypeVar

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from errors import DomainError, NotFoundError, StorageError, ValidationError
from models import TaskStatus

logger = logging.getLogger(__name__)

E = TypeVar("E")
M = TypeVar("M")


def parse_enum(enum_cls: Type[E], value, label: str) -> E:
    """
    Convert a raw string into a member of enum_cls.

    Raises:
        ValidationError: if the value is not one of the enum's values
    """
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(f"Invalid {label} '{value}'. Must be one of: {allowed}")


def get_or_404(db: Session, model: Type[M], entity_id: int, label: str) -> M:
    instance = db.query(model).filter(model.id == entity_id).first()
    if instance is None:
        logger.info(f"{label} {entity_id} not found")
        raise NotFoundError(f"{label} not found")
    return instance


def completion_rate(completed: int, total: int) -> float:
    """Percentage of completed items, 0.0 when there is nothing to complete."""
    if total == 0:
        return 0.0
    return completed / total * 100


def count_by_status(db: Session, model, *criteria) -> dict:
    """
    Count rows of a task model per status.

    Returns a dict with one key per TaskStatus value plus "total"; statuses
    with no rows are reported as 0.
    """
    rows = (
        db.query(model.status, func.count(model.id))
        .filter(*criteria)
        .group_by(model.status)
        .all()
    )
    counts = {"total": 0}
    counts.update({status.value: 0 for status in TaskStatus})
    for status, count in rows:
        counts[TaskStatus(status).value] = count
        counts["total"] += count
    return counts


@contextmanager
def transaction(db: Session, action: str) -> Iterator[Session]:
    """
    Run a block of writes as one unit and commit it.

    Any SQLAlchemyError rolls the whole block back and is re-raised as
    StorageError; domain errors raised inside the block also roll back.

    Example:
        >>> with transaction(db, "create project"):
        ...     db.add(project)
        ...     db.flush()
        ...     db.add(membership)
    """
    try:
        yield db
        db.commit()
    except DomainError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to {action}: {e}")
        raise StorageError(f"Failed to {action}") from e
