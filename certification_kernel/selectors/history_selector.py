"""
HistorySelector -- paged, ordered read access to a customer's status history.

Records come back oldest first, ordered by (changed_at, seq).  Soft-deleted
customers stay auditable: their history is still readable.
"""

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from certification_kernel.config import CertificationConfig
from certification_kernel.domain.dtos import HistoryPage, StatusHistoryEntry
from certification_kernel.exceptions import CustomerNotFoundError, InvalidPageError
from certification_kernel.models.customer import Customer
from certification_kernel.models.status_history import StatusHistoryRecord
from certification_kernel.selectors.base import BaseSelector


class HistorySelector(BaseSelector):

    def __init__(self, session: Session, config: CertificationConfig | None = None):
        super().__init__(session)
        self._config = config or CertificationConfig()

    def get_status_history(
        self,
        customer_id: UUID,
        page: int = 0,
        page_size: int | None = None,
    ) -> HistoryPage:
        """
        One page of a customer's history.

        Raises:
            InvalidPageError: negative page, or page_size outside
                1..history_max_page_size.
            CustomerNotFoundError: the customer never existed.
        """
        size = self._config.history_page_size if page_size is None else page_size
        max_size = self._config.history_max_page_size
        if (
            isinstance(page, bool)
            or isinstance(size, bool)
            or not isinstance(page, int)
            or not isinstance(size, int)
            or page < 0
            or size < 1
            or size > max_size
        ):
            raise InvalidPageError(page, size, max_size)

        exists = self.session.execute(
            select(Customer.id).where(Customer.id == customer_id)
        ).scalar_one_or_none()
        if exists is None:
            raise CustomerNotFoundError(str(customer_id))

        total = self.session.execute(
            select(func.count())
            .select_from(StatusHistoryRecord)
            .where(StatusHistoryRecord.customer_id == customer_id)
        ).scalar_one()

        rows = self.session.execute(
            select(StatusHistoryRecord)
            .where(StatusHistoryRecord.customer_id == customer_id)
            .order_by(StatusHistoryRecord.changed_at, StatusHistoryRecord.seq)
            .offset(page * size)
            .limit(size)
        ).scalars()

        return HistoryPage(
            customer_id=customer_id,
            page=page,
            page_size=size,
            total=total,
            records=tuple(StatusHistoryEntry.from_model(r) for r in rows),
        )

    def get_full_history(self, customer_id: UUID) -> list[StatusHistoryEntry]:
        """Every record, oldest first, unpaged."""
        rows = self.session.execute(
            select(StatusHistoryRecord)
            .where(StatusHistoryRecord.customer_id == customer_id)
            .order_by(StatusHistoryRecord.changed_at, StatusHistoryRecord.seq)
        ).scalars()
        return [StatusHistoryEntry.from_model(r) for r in rows]
