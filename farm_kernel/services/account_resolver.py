"""
AccountResolver -- well-known account code to tenant account.

Responsibility:
    Maps codes such as ``MACHINERY_SERVICE_EXPENSE`` or ``DUE_TO_LANDLORD``
    to the tenant's Account row.  Orchestrators never query the accounts
    table themselves.

Architecture position:
    Kernel > Services.  Read-only collaborator passed explicitly into every
    orchestrator.

Failure modes:
    - UnknownAccountError if the tenant has no active account with the code.
"""

from uuid import UUID

from sqlalchemy.orm import Session

from farm_kernel.exceptions import UnknownAccountError
from farm_kernel.logging_config import get_logger
from farm_kernel.models.account import Account
from farm_kernel.selectors.base import tenant_select

logger = get_logger("services.account_resolver")


class AccountResolver:
    """
    Resolve account codes for a tenant.

    Guarantees:
        - Only active accounts of the requested tenant are returned.
        - Lookups are cached per (tenant, code) for the lifetime of the
          resolver instance (one unit of work).
    """

    def __init__(self, session: Session):
        self._session = session
        self._cache: dict[tuple[UUID, str], Account] = {}

    def get_by_code(self, tenant_id: UUID, code: str) -> Account:
        """
        Return the tenant's account for ``code``.

        Raises:
            UnknownAccountError: no active account mapped to the code.
        """
        cached = self._cache.get((tenant_id, code))
        if cached is not None:
            return cached

        account = self._session.execute(
            tenant_select(
                Account,
                tenant_id,
                Account.code == code,
                Account.is_active.is_(True),
            )
        ).scalar_one_or_none()

        if account is None:
            logger.warning(
                "account_code_unresolved",
                extra={"tenant_id": str(tenant_id), "account_code": code},
            )
            raise UnknownAccountError(str(tenant_id), code)

        self._cache[(tenant_id, code)] = account
        return account
