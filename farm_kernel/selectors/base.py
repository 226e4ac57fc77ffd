"""
Module: farm_kernel.selectors.base
Responsibility: Tenant-scoped query construction and the abstract base for
    read-only selectors.
Architecture position: Kernel > Selectors.  May import from db/base.py and
    models/.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Tenancy: every query against tenant-owned data starts from
      ``tenant_select(Model, tenant_id)``, which always applies the tenant
      filter.  A caller cannot obtain an unfiltered statement from it.
    - Read-only access: selectors never add, delete, flush or commit.
"""

from typing import Any, TypeVar
from uuid import UUID

from sqlalchemy import Select, select
from sqlalchemy.orm import Session

from farm_kernel.db.base import TenantScopedBase

ModelType = TypeVar("ModelType", bound=TenantScopedBase)


def tenant_select(model: type[ModelType], tenant_id: UUID, *criteria: Any) -> Select:
    """
    SELECT of ``model`` restricted to ``tenant_id`` plus extra criteria.

    Raises:
        ValueError: tenant_id is None.
    """
    if tenant_id is None:
        raise ValueError(f"tenant_id is required to query {model.__name__}")
    return select(model).where(model.tenant_id == tenant_id, *criteria)


def get_for_tenant(
    session: Session,
    model: type[ModelType],
    entity_id: UUID,
    tenant_id: UUID,
    *,
    for_update: bool = False,
) -> ModelType | None:
    """Load one row by id, only if it belongs to ``tenant_id``."""
    stmt = tenant_select(model, tenant_id, model.id == entity_id)
    if for_update:
        stmt = stmt.with_for_update()
    return session.execute(stmt).scalar_one_or_none()


class BaseSelector:
    """
    Base class for read-only selectors.

    Contract:
        Selectors accept a Session from the caller, perform tenant-scoped
        queries and return frozen DTOs.  They MUST NOT mutate any data.
    """

    def __init__(self, session: Session):
        self.session = session
