# Overview: Pytest coverage for tenant-scoped document numbering.

import pytest

from frigo.services.sequence_service import (
    DocumentSequenceError,
    format_document_number,
    next_document_number,
)


class TestFormatting:

    def test_pads_number(self):
        assert format_document_number("FAC", 2025, 7) == "FAC-2025-0007"
        assert format_document_number("PAY", 2025, 7, pad=3) == "PAY-2025-007"

    def test_wide_numbers_are_not_truncated(self):
        assert format_document_number("PAY", 2025, 12345, pad=3) == "PAY-2025-12345"

    def test_rejects_zero(self):
        with pytest.raises(DocumentSequenceError):
            format_document_number("FAC", 2025, 0)


class TestCounters:

    def test_counter_increments(self, db_session, tenant_a):
        first = next_document_number(tenant_id=tenant_a.id, document_type="INVOICE", year=2025)
        second = next_document_number(tenant_id=tenant_a.id, document_type="INVOICE", year=2025)
        db_session.commit()
        assert first == "FAC-2025-0001"
        assert second == "FAC-2025-0002"

    def test_counters_are_per_type(self, db_session, tenant_a):
        next_document_number(tenant_id=tenant_a.id, document_type="INVOICE", year=2025)
        pay = next_document_number(tenant_id=tenant_a.id, document_type="PAYMENT", year=2025)
        assert pay == "PAY-2025-001"

    def test_counters_are_per_year(self, db_session, tenant_a):
        next_document_number(tenant_id=tenant_a.id, document_type="INVOICE", year=2025)
        assert next_document_number(tenant_id=tenant_a.id, document_type="INVOICE", year=2026) == "FAC-2026-0001"

    def test_counters_are_per_tenant(self, db_session, tenant_a, tenant_b):
        next_document_number(tenant_id=tenant_a.id, document_type="INVOICE", year=2025)
        next_document_number(tenant_id=tenant_a.id, document_type="INVOICE", year=2025)
        assert next_document_number(tenant_id=tenant_b.id, document_type="INVOICE", year=2025) == "FAC-2025-0001"

    def test_requires_tenant(self, db_session):
        with pytest.raises(DocumentSequenceError):
            next_document_number(tenant_id=None, document_type="INVOICE", year=2025)
