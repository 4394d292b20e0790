"""
Read-side selector tests: paged history and monthly count reporting.
"""

from datetime import date
from uuid import uuid4

import pytest

from certification_kernel.domain.status import CustomerStatus
from certification_kernel.exceptions import CustomerNotFoundError, InvalidPageError

S = CustomerStatus


class TestHistorySelector:

    def test_history_oldest_first(self, new_customer, walk, history_selector, deterministic_clock):
        customer = new_customer()
        deterministic_clock.advance(10)
        walk(customer.id, S.ABORTED, S.NEW, S.NOTIFIED)

        page = history_selector.get_status_history(customer.id)

        assert page.total == 4
        assert [r.to_status for r in page.records] == [S.NEW, S.ABORTED, S.NEW, S.NOTIFIED]
        assert [r.seq for r in page.records] == [1, 2, 3, 4]
        assert not page.has_next

    def test_same_timestamp_ordered_by_seq(self, new_customer, walk, history_selector):
        """The deterministic clock never moves here, so seq breaks the tie."""
        customer = new_customer()
        walk(customer.id, S.NOTIFIED, S.SUBMITTED, S.CERTIFIED)
        records = history_selector.get_full_history(customer.id)
        assert [r.to_status for r in records] == [S.NEW, S.NOTIFIED, S.SUBMITTED, S.CERTIFIED]

    def test_paging(self, new_customer, walk, history_selector):
        customer = new_customer()
        walk(customer.id, S.ABORTED, S.NEW, S.ABORTED, S.NEW)

        first = history_selector.get_status_history(customer.id, page=0, page_size=2)
        second = history_selector.get_status_history(customer.id, page=1, page_size=2)
        third = history_selector.get_status_history(customer.id, page=2, page_size=2)

        assert first.total == 5
        assert first.total_pages == 3
        assert first.has_next and second.has_next and not third.has_next
        assert [r.seq for r in first.records + second.records + third.records] == [1, 2, 3, 4, 5]

    def test_page_past_end_is_empty(self, new_customer, history_selector):
        customer = new_customer()
        page = history_selector.get_status_history(customer.id, page=5)
        assert page.records == ()
        assert page.total == 1

    @pytest.mark.parametrize(
        "page,page_size", [(-1, 10), (0, 0), (0, 201), ("1", 10), (True, 10), (0, True)],
    )
    def test_invalid_page_rejected(self, new_customer, history_selector, page, page_size):
        customer = new_customer()
        with pytest.raises(InvalidPageError):
            history_selector.get_status_history(customer.id, page=page, page_size=page_size)

    def test_unknown_customer(self, history_selector):
        with pytest.raises(CustomerNotFoundError):
            history_selector.get_status_history(uuid4())

    def test_deleted_customer_still_auditable(self, new_customer, registry, session, history_selector):
        customer = new_customer()
        registry.soft_delete(customer.id, "test-user")
        session.commit()
        page = history_selector.get_status_history(customer.id)
        assert page.total == 1


class TestAggregateSelector:

    def _certify(self, new_customer, walk, clock, day, certificate_type=None):
        clock.set_date(day)
        customer = new_customer(certificate_type=certificate_type)
        walk(customer.id, S.NOTIFIED, S.SUBMITTED, S.CERTIFIED)
        return customer

    def test_monthly_counts(self, new_customer, walk, deterministic_clock, aggregate_selector):
        self._certify(new_customer, walk, deterministic_clock, date(2024, 1, 10))
        self._certify(new_customer, walk, deterministic_clock, date(2024, 1, 31))
        self._certify(new_customer, walk, deterministic_clock, date(2024, 3, 1))

        rows = aggregate_selector.get_monthly_counts("2024-01", "2024-03")
        assert [(r.month, r.count) for r in rows] == [("2024-01", 2), ("2024-03", 1)]

        dense = aggregate_selector.get_monthly_counts("2024-01", "2024-03", fill_missing=True)
        assert [(r.month, r.count) for r in dense] == [
            ("2024-01", 2), ("2024-02", 0), ("2024-03", 1),
        ]
        assert dense[1].updated_at is None

    def test_monthly_counts_by_category(
        self, new_customer, walk, deterministic_clock, aggregate_selector,
    ):
        self._certify(new_customer, walk, deterministic_clock, date(2024, 2, 1), "Q2_HOIST")
        self._certify(new_customer, walk, deterministic_clock, date(2024, 2, 2), "Q2_HOIST")
        self._certify(new_customer, walk, deterministic_clock, date(2024, 2, 3))

        rows = aggregate_selector.get_monthly_counts_by_category("2024-02", "2024-02")
        assert [(r.category, r.count) for r in rows] == [("OTHER", 1), ("Q2_HOIST", 2)]

        only_hoist = aggregate_selector.get_monthly_counts_by_category(
            "2024-01", "2024-12", category="Q2_HOIST",
        )
        assert [(r.month, r.count) for r in only_hoist] == [("2024-02", 2)]

        assert aggregate_selector.get_category_totals("2024-01", "2024-12") == {
            "OTHER": 1, "Q2_HOIST": 2,
        }
