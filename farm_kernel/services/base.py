"""
BaseService -- abstract base for kernel services that write.

Responsibility:
    Provides the common constructor and session-handling contract.  Services
    receive a SQLAlchemy ``Session`` and use ``session.flush()`` -- never
    ``session.commit()``.

Architecture position:
    Kernel > Services.  The orchestrators in ``farm_modules`` (through
    ``PostingRunner``) own commit/rollback; services only flush.

Failure modes:
    - A subclass that commits breaks the atomicity of the post/reverse
      unit of work.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseService(ABC):
    """
    Abstract base class for kernel services.

    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()``.
    """

    def __init__(self, session: Session):
        self.session = session
