# Overview: Pytest coverage for receptions, pallet plans and warehouse reference data.

from datetime import date

import pytest

from frigo.services import reception_service
from frigo.services.reception_service import (
    ReceptionError,
    client_code,
    pallet_reference,
    plan_pallets,
)
from frigo.services.settings_service import update_settings
from frigo.services.tenant_service import TenantAccessError
from frigo.time_utils import business_date, utcnow
from frigo.validation import ValidationError


ON = date(2025, 6, 12)


class TestPlanPallets:

    def test_exact_split(self):
        plan = plan_pallets(120, 40, on=ON, client_name="Domaine Benali")
        assert plan["total_pallets"] == 3
        assert plan["full_pallets"] == 3
        assert plan["remaining_crates"] == 0
        assert [p["crates"] for p in plan["pallets"]] == [40, 40, 40]
        assert plan["pallets"][0]["reference"] == "PAL-20250612-DOM-001"

    def test_last_pallet_takes_the_rest(self):
        plan = plan_pallets(130, 40, on=ON)
        assert plan["total_pallets"] == 4
        assert [p["crates"] for p in plan["pallets"]] == [40, 40, 40, 10]
        assert plan["pallets"][-1]["is_full"] is False
        assert plan["crates_unassigned"] == 0

    def test_custom_counts_are_capped(self):
        plan = plan_pallets(100, 40, {1: 90, 2: 30}, on=ON)
        # 3 pallets; pallet 1 asks for 90 of 100, pallet 2 is capped at the 10 left
        assert [p["crates"] for p in plan["pallets"]] == [90, 10, 0]
        assert plan["pallets"][0]["is_custom"] is True
        assert plan["crates_assigned"] == 100

    def test_small_custom_count_leaves_crates_for_last_pallet(self):
        plan = plan_pallets(100, 40, {1: 20}, on=ON)
        assert [p["crates"] for p in plan["pallets"]] == [20, 40, 40]

    def test_empty_reception(self):
        plan = plan_pallets(0, 40, on=ON)
        assert plan["total_pallets"] == 0
        assert plan["pallets"] == []

    def test_default_day_is_tenant_local(self):
        plan = plan_pallets(10, 5, client_name="Coop", tz_name="Africa/Casablanca")
        today = business_date(utcnow(), "Africa/Casablanca")
        assert plan["pallets"][0]["reference"] == pallet_reference(today, "Coop", 1)

    def test_invalid_inputs(self):
        with pytest.raises(ValidationError):
            plan_pallets(10, 0)
        with pytest.raises(ValidationError):
            plan_pallets(10, 5, {1: -1})

    def test_client_code(self):
        assert client_code("benali") == "BEN"
        assert client_code("A B") == "AB"
        assert client_code("") == "CLI"
        assert client_code(None) == "CLI"
        assert pallet_reference(ON, "Coop", 12) == "PAL-20250612-COO-012"


class TestReceptions:

    def _create(self, tenant, client, room, **extra):
        data = {"client_id": client.id, "room_id": room.id, "total_crates": 130}
        data.update(extra)
        return reception_service.create_reception(tenant.id, data)

    def test_create_snapshots_names(self, db_session, tenant_a, client_a, room_a):
        product = reception_service.create_reference(tenant_a.id, "products", {"name": "Pomme de terre", "variety": "Spunta"})
        reception = self._create(tenant_a, client_a, room_a, product_id=product.id)

        assert reception.serial.startswith("REC-")
        assert reception.status == "pending"
        assert reception.client_name == "Domaine Benali"
        assert reception.room_name == "Chambre 1"
        assert reception.product_label == "Pomme de terre - Spunta"

    def test_client_is_required(self, db_session, tenant_a, room_a):
        with pytest.raises(ValidationError):
            reception_service.create_reception(tenant_a.id, {"room_id": room_a.id, "total_crates": 10})

    def test_inactive_room_is_refused(self, db_session, tenant_a, client_a, room_a):
        reception_service.update_reference(tenant_a.id, "rooms", room_a.id, {"is_active": False})
        with pytest.raises(ValidationError):
            self._create(tenant_a, client_a, room_a)

    def test_foreign_references_are_refused(self, db_session, tenant_a, tenant_b, client_a, room_a):
        truck_b = reception_service.create_reference(tenant_b.id, "trucks", {"number": "12345-A-6"})
        with pytest.raises(TenantAccessError):
            self._create(tenant_a, client_a, room_a, truck_id=truck_b.id)

    def test_status_moves_forward_only(self, db_session, tenant_a, client_a, room_a):
        reception = self._create(tenant_a, client_a, room_a)
        reception_service.set_reception_status(tenant_a.id, reception.id, "in_progress")
        with pytest.raises(ReceptionError):
            reception_service.set_reception_status(tenant_a.id, reception.id, "pending")

        reception_service.set_reception_status(tenant_a.id, reception.id, "completed")
        with pytest.raises(ReceptionError):
            reception_service.update_reception(tenant_a.id, reception.id, {"notes": "late"})
        with pytest.raises(ReceptionError):
            reception_service.delete_reception(tenant_a.id, reception.id)

    def test_pallet_plan_uses_settings_and_arrival_date(self, db_session, tenant_a, client_a, room_a):
        reception = self._create(tenant_a, client_a, room_a, arrival_at="2025-06-12T08:30:00Z")
        plan = reception_service.reception_pallet_plan(tenant_a.id, reception.id)

        assert plan["crates_per_pallet"] == 40
        assert plan["total_pallets"] == 4
        assert plan["serial"] == reception.serial
        assert plan["pallets"][0]["reference"] == "PAL-20250612-DOM-001"

    def test_pallet_references_use_tenant_local_arrival_day(self, db_session, tenant_a, client_a, room_a):
        update_settings(tenant_a.id, {"timezone": "Africa/Casablanca"})
        reception = self._create(tenant_a, client_a, room_a, arrival_at="2025-06-12T23:30:00Z")
        plan = reception_service.reception_pallet_plan(tenant_a.id, reception.id)
        assert plan["pallets"][0]["reference"] == "PAL-20250613-DOM-001"

    def test_pallet_plan_overrides_from_json(self, db_session, tenant_a, client_a, room_a):
        reception = self._create(tenant_a, client_a, room_a)
        plan = reception_service.reception_pallet_plan(tenant_a.id, reception.id, 50, {"1": "30"})
        assert [p["crates"] for p in plan["pallets"]] == [30, 50, 50]

        with pytest.raises(ValidationError):
            reception_service.reception_pallet_plan(tenant_a.id, reception.id, 50, [30])

    def test_room_occupancy(self, db_session, tenant_a, client_a, room_a):
        self._create(tenant_a, client_a, room_a, total_crates=500)
        self._create(tenant_a, client_a, room_a, total_crates=300)

        [row] = reception_service.room_occupancy(tenant_a.id)
        assert row["stored_crates"] == 800
        assert row["available_crates"] == 1200
        assert row["occupancy_pct"] == 40.0


class TestReferenceData:

    def test_unknown_kind(self, db_session, tenant_a):
        with pytest.raises(ValidationError):
            reception_service.list_reference(tenant_a.id, "forklifts")

    def test_negative_capacity(self, db_session, tenant_a):
        with pytest.raises(ValidationError):
            reception_service.create_reference(tenant_a.id, "rooms", {"name": "Chambre 9", "capacity_crates": -1})

    def test_active_only_filter(self, db_session, tenant_a):
        reception_service.create_reference(tenant_a.id, "drivers", {"name": "Youssef"})
        reception_service.create_reference(tenant_a.id, "drivers", {"name": "Hassan", "is_active": False})
        names = [d.name for d in reception_service.list_reference(tenant_a.id, "drivers", active_only=True)]
        assert names == ["Youssef"]
