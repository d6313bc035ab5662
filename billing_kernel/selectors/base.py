"""
Module: billing_kernel.selectors.base
Responsibility: Base class for read-only query selectors.  Selectors are the
    read side of the billing kernel: they turn ORM rows into frozen domain
    records and never mutate anything.
Architecture position: Kernel > Selectors.  May import from models/ and
    domain/.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Selectors accept a Session from the caller and never call add(),
      delete(), flush() or commit().
    - Results are frozen dataclasses, not ORM instances.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from billing_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    """Holds the caller's session; subclasses define the queries."""

    def __init__(self, session: Session):
        self.session = session
