"""Tests for CustomerRegistry and the engine's transactional scope."""

from uuid import uuid4

import pytest

from certification_kernel.config import CertificationConfig
from certification_kernel.db.engine import get_session, session_scope
from certification_kernel.domain.status import CertificateType, CustomerStatus
from certification_kernel.exceptions import (
    CustomerNotDeletedError,
    CustomerNotFoundError,
    InvalidActorError,
    UnknownCategoryError,
)
from certification_kernel.models.customer import Customer
from certification_kernel.services.audit_trail import AuditTrailStore
from certification_kernel.services.customer_registry import (
    INITIAL_REASON,
    CustomerRegistry,
)

ACTOR = "test-user"


class TestRegister:

    def test_new_customer_gets_genesis_record(self, registry, audit_trail):
        customer = registry.register(ACTOR, certificate_type="q2_hoist", name="Acme")

        assert customer.current_status == CustomerStatus.NEW
        assert customer.certificate_type == CertificateType.Q2_HOIST
        assert customer.certified_at is None

        records = audit_trail.records_for(customer.id)
        assert len(records) == 1
        assert records[0].from_status is None
        assert records[0].to_status == CustomerStatus.NEW
        assert records[0].reason == INITIAL_REASON
        assert records[0].actor == ACTOR

    def test_blank_certificate_type_is_unset(self, registry):
        assert registry.register(ACTOR, certificate_type="  ").certificate_type is None

    def test_unknown_certificate_type_rejected(self, registry):
        with pytest.raises(UnknownCategoryError):
            registry.register(ACTOR, certificate_type="CRANE_9000")

    def test_blank_actor_rejected(self, registry):
        with pytest.raises(InvalidActorError):
            registry.register("   ")

    def test_explicit_id_kept(self, registry):
        wanted = uuid4()
        assert registry.register(ACTOR, customer_id=wanted).id == wanted

    def test_configured_actor_length_enforced(self, session, deterministic_clock):
        registry = CustomerRegistry(
            session, deterministic_clock, config=CertificationConfig(actor_max_length=8),
        )
        with pytest.raises(InvalidActorError, match="8 characters"):
            registry.register("ops-automation")
        assert registry.register("ops-team").id is not None


class TestSoftDelete:

    def test_deleted_customer_hidden_by_default(self, registry, new_customer):
        customer = new_customer()
        registry.soft_delete(customer.id, ACTOR)

        with pytest.raises(CustomerNotFoundError):
            registry.get(customer.id)
        assert registry.get(customer.id, include_deleted=True).is_deleted

    def test_restore_brings_customer_back(self, registry, new_customer):
        customer = new_customer()
        registry.soft_delete(customer.id, ACTOR)
        restored = registry.restore(customer.id, ACTOR)

        assert not restored.is_deleted
        assert registry.get(customer.id).current_status == CustomerStatus.NEW

    def test_restore_requires_deleted_customer(self, registry, new_customer):
        customer = new_customer()
        with pytest.raises(CustomerNotDeletedError) as exc_info:
            registry.restore(customer.id, ACTOR)
        assert exc_info.value.code == "CUSTOMER_NOT_DELETED"

    def test_delete_and_restore_write_no_history(self, registry, audit_trail, new_customer):
        customer = new_customer()
        registry.soft_delete(customer.id, ACTOR)
        registry.restore(customer.id, ACTOR)
        assert audit_trail.count_for(customer.id) == 1

    def test_unknown_customer(self, registry):
        with pytest.raises(CustomerNotFoundError):
            registry.soft_delete(uuid4(), ACTOR)


class TestSessionScope:
    """session_scope commits on success and rolls back on error."""

    def test_commit_on_success(self, session_factory):
        with session_scope() as session:
            customer_id = CustomerRegistry(session).register(ACTOR).id

        check = session_factory()
        assert check.get(Customer, customer_id) is not None
        assert AuditTrailStore(check).count_for(customer_id) == 1
        check.close()

    def test_rollback_on_error(self, session_factory):
        customer_id = uuid4()
        with pytest.raises(RuntimeError, match="boom"):
            with session_scope() as session:
                CustomerRegistry(session).register(ACTOR, customer_id=customer_id)
                raise RuntimeError("boom")

        check = get_session()
        try:
            assert check.get(Customer, customer_id) is None
        finally:
            check.close()
