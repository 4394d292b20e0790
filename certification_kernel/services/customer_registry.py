"""
CustomerRegistry -- the narrow customer repository the kernel relies on.

Responsibility:
    Create customers (with their genesis history record), look them up,
    and soft-delete / restore them.  General customer CRUD lives outside
    the kernel; this is the slice the lifecycle needs: identity, current
    status, certificate type and the soft-delete marker.

Invariants enforced:
    - A new customer starts in NEW with one history record
      ``None -> NEW`` ("Initial customer creation").
    - Soft delete and restore write no history; only transitions do.
    - Deleted customers are invisible to ``get`` unless asked for.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from certification_kernel.config import ACTOR_COLUMN_LENGTH, CertificationConfig
from certification_kernel.domain.clock import Clock
from certification_kernel.domain.dtos import CustomerSnapshot
from certification_kernel.domain.status import CustomerStatus, parse_certificate_type
from certification_kernel.exceptions import (
    CustomerNotDeletedError,
    CustomerNotFoundError,
    InvalidActorError,
)
from certification_kernel.logging_config import get_logger
from certification_kernel.models.customer import Customer
from certification_kernel.services.audit_trail import AuditTrailStore
from certification_kernel.services.base import BaseService

logger = get_logger("services.customer_registry")

INITIAL_REASON = "Initial customer creation"


def require_actor(actor: str | None, max_length: int = ACTOR_COLUMN_LENGTH) -> str:
    """Normalize an opaque actor string or raise InvalidActorError."""
    if not isinstance(actor, str) or not actor.strip():
        raise InvalidActorError("actor must be a non-empty string")
    actor = actor.strip()
    if len(actor) > max_length:
        raise InvalidActorError(f"actor exceeds {max_length} characters")
    return actor


class CustomerRegistry(BaseService):
    """Create, fetch and soft-delete customers."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        audit_trail: AuditTrailStore | None = None,
        config: CertificationConfig | None = None,
    ):
        super().__init__(session, clock)
        self._audit = audit_trail or AuditTrailStore(session, self.clock)
        self._config = config or CertificationConfig()

    def load(
        self,
        customer_id: UUID,
        *,
        for_update: bool = False,
        include_deleted: bool = False,
    ) -> Customer:
        """
        Load the Customer entity, optionally under a row lock.

        ``for_update`` re-reads the row from the database even when it is
        already in the identity map, so callers always validate against
        committed state.

        Raises:
            CustomerNotFoundError: missing, or soft-deleted and
                ``include_deleted`` is False.
        """
        stmt = select(Customer).where(Customer.id == customer_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        customer = self.session.execute(stmt).scalar_one_or_none()
        if customer is None or (customer.is_deleted and not include_deleted):
            raise CustomerNotFoundError(str(customer_id))
        return customer

    def register(
        self,
        actor: str,
        certificate_type=None,
        name: str | None = None,
        customer_id: UUID | None = None,
    ) -> CustomerSnapshot:
        """Create a NEW customer and its genesis history record."""
        actor = require_actor(actor, self._config.actor_max_length)
        customer = Customer(
            name=name,
            current_status=CustomerStatus.NEW,
            certificate_type=parse_certificate_type(certificate_type),
            created_by=actor,
        )
        if customer_id is not None:
            customer.id = customer_id
        self.session.add(customer)
        self.session.flush()

        self._audit.append(
            customer_id=customer.id,
            from_status=None,
            to_status=CustomerStatus.NEW,
            reason=INITIAL_REASON,
            actor=actor,
        )
        logger.info(
            "customer_registered",
            extra={
                "customer_id": str(customer.id),
                "certificate_type": customer.certificate_type,
            },
        )
        return CustomerSnapshot.from_model(customer)

    def get(self, customer_id: UUID, include_deleted: bool = False) -> CustomerSnapshot:
        return CustomerSnapshot.from_model(
            self.load(customer_id, include_deleted=include_deleted)
        )

    def soft_delete(self, customer_id: UUID, actor: str) -> CustomerSnapshot:
        """
        Mark a customer deleted.

        The customer drops out of reconciliation ground truth; its stored
        counters are corrected by the next reconciliation run.
        """
        actor = require_actor(actor, self._config.actor_max_length)
        customer = self.load(customer_id, for_update=True)
        customer.deleted_at = self.clock.now()
        customer.updated_by = actor
        self.session.flush()
        logger.info("customer_soft_deleted", extra={"customer_id": str(customer_id)})
        return CustomerSnapshot.from_model(customer)

    def restore(self, customer_id: UUID, actor: str) -> CustomerSnapshot:
        actor = require_actor(actor, self._config.actor_max_length)
        customer = self.load(customer_id, for_update=True, include_deleted=True)
        if not customer.is_deleted:
            raise CustomerNotDeletedError(str(customer_id))
        customer.deleted_at = None
        customer.updated_by = actor
        self.session.flush()
        logger.info("customer_restored", extra={"customer_id": str(customer_id)})
        return CustomerSnapshot.from_model(customer)
