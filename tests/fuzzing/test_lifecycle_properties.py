"""
Property-based tests for the lifecycle.

Random sequences of requested statuses are applied to fresh customers.
After every sequence:
- each request was accepted iff the table allows it (or it was a no-op)
- the history chain validates and has one record per applied change
- stored monthly counters equal the number of CERTIFIED customers
  certified in that month
"""

from datetime import date

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st
from sqlalchemy import func, select

from certification_kernel.domain.months import first_day, first_day_after
from certification_kernel.domain.status import CustomerStatus
from certification_kernel.domain.transitions import StatusTransitionValidator
from certification_kernel.exceptions import RuleViolationError
from certification_kernel.models.customer import Customer

MONTHS = ("2024-01", "2024-02", "2024-03")

steps = st.lists(
    st.tuples(st.sampled_from(list(CustomerStatus)), st.sampled_from(MONTHS)),
    min_size=1,
    max_size=12,
)

fuzz_settings = settings(
    max_examples=40,
    deadline=None,
    suppress_health_check=[HealthCheck.function_scoped_fixture, HealthCheck.too_slow],
)


def _certified_in(session, month):
    return session.execute(
        select(func.count())
        .select_from(Customer)
        .where(
            Customer.current_status == CustomerStatus.CERTIFIED,
            Customer.certified_at >= first_day(month),
            Customer.certified_at < first_day_after(month),
        )
    ).scalar_one()


class TestLifecycleProperties:

    @fuzz_settings
    @given(sequence=steps)
    def test_only_legal_transitions_are_applied(
        self, sequence, session, registry, lifecycle, audit_trail, deterministic_clock,
    ):
        validator = StatusTransitionValidator()
        customer = registry.register("fuzzer")
        session.commit()

        current = CustomerStatus.NEW
        applied = 0
        for target, month in sequence:
            deterministic_clock.set_date(first_day(month))
            try:
                result = lifecycle.transition(customer.id, target, None, "fuzzer")
            except RuleViolationError:
                assert target != current
                assert not validator.is_allowed(current, target)
                continue

            if target == current:
                assert result.is_noop
            else:
                assert validator.is_allowed(current, target)
                assert not result.is_noop
                applied += 1
                current = target

        assert audit_trail.count_for(customer.id) == applied + 1
        assert audit_trail.validate_chain(customer.id)

    @fuzz_settings
    @given(sequences=st.lists(steps, min_size=1, max_size=4))
    def test_counters_agree_with_ground_truth(
        self, sequences, session, registry, lifecycle, aggregate_store, deterministic_clock,
    ):
        for sequence in sequences:
            customer = registry.register("fuzzer")
            session.commit()
            for target, month in sequence:
                deterministic_clock.set_date(first_day(month))
                try:
                    lifecycle.transition(customer.id, target, None, "fuzzer")
                except RuleViolationError:
                    pass

        for month in MONTHS:
            assert aggregate_store.get_for_month(month) == _certified_in(session, month)
            by_category = aggregate_store.get_for_month_by_category(month)
            assert sum(by_category.values()) == aggregate_store.get_for_month(month)

    @fuzz_settings
    @given(first=st.sampled_from(MONTHS), second=st.sampled_from(MONTHS))
    def test_certified_at_fixed_at_first_entry(
        self, first, second, session, registry, lifecycle, deterministic_clock,
    ):
        customer = registry.register("fuzzer")
        session.commit()
        deterministic_clock.set_date(first_day(first))
        for status in (CustomerStatus.NOTIFIED, CustomerStatus.SUBMITTED, CustomerStatus.CERTIFIED):
            lifecycle.transition(customer.id, status, None, "fuzzer")

        deterministic_clock.set_date(first_day(second))
        result = lifecycle.transition(customer.id, CustomerStatus.CERTIFIED, None, "fuzzer")

        assert result.is_noop
        assert result.customer.certified_at == first_day(first)
        assert isinstance(result.customer.certified_at, date)
