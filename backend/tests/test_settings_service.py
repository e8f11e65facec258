import unittest

from frigo import create_app
from frigo.extensions import db
from frigo.models import Tenant, TenantSettings, User
from frigo.services import settings_service
from frigo.services.tenant_service import create_tenant
from frigo.validation import ValidationError


class SettingsServiceTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.app = create_app({
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
            "SQLALCHEMY_TRACK_MODIFICATIONS": False,
        })
        cls.ctx = cls.app.app_context()
        cls.ctx.push()
        db.create_all()

    @classmethod
    def tearDownClass(cls):
        db.session.remove()
        db.drop_all()
        cls.ctx.pop()

    def setUp(self):
        db.session.query(TenantSettings).delete()
        db.session.query(User).delete()
        db.session.query(Tenant).delete()
        db.session.commit()

        self.tenant = create_tenant(
            "Frigo Atlas", "ATLAS",
            caution_per_crate_cents=10000,
            crates_per_pallet=40,
        )

    def test_defaults(self):
        settings = settings_service.get_settings(self.tenant.id)
        self.assertEqual(settings.name, "Frigo Atlas")
        self.assertEqual(settings.currency, "MAD")
        self.assertEqual(settings.locale, "fr")
        self.assertEqual(settings.initial_cash_balance_cents, 0)
        self.assertEqual(settings.crates_per_pallet, 40)

    def test_missing_row_is_created(self):
        tenant = Tenant(name="Sans réglages", code="BARE", is_active=True)
        db.session.add(tenant)
        db.session.commit()

        settings = settings_service.get_settings(tenant.id)
        self.assertIsNotNone(settings.id)
        self.assertEqual(settings.tenant_id, tenant.id)

    def test_update_normalizes_values(self):
        settings = settings_service.update_settings(self.tenant.id, {
            "currency": "eur",
            "timezone": "Africa/Casablanca",
            "empty_crate_pool_total": "800",
            "name": "  ",
        })
        self.assertEqual(settings.currency, "EUR")
        self.assertEqual(settings.timezone, "Africa/Casablanca")
        self.assertEqual(settings.empty_crate_pool_total, 800)
        self.assertIsNone(settings.name)

    def test_version_is_bumped(self):
        before = settings_service.get_settings(self.tenant.id).version_id
        settings = settings_service.update_settings(self.tenant.id, {"locale": "ar"})
        self.assertEqual(settings.version_id, before + 1)

    def test_rejects_negative_amounts(self):
        with self.assertRaises(ValidationError):
            settings_service.update_settings(self.tenant.id, {"caution_per_crate_cents": -1})

    def test_rejects_zero_crates_per_pallet(self):
        with self.assertRaises(ValidationError):
            settings_service.update_settings(self.tenant.id, {"crates_per_pallet": 0})

    def test_rejects_null_numbers(self):
        with self.assertRaises(ValidationError):
            settings_service.validate_settings_patch({"season_crate_rate_cents": None})

    def test_rejects_unknown_locale(self):
        with self.assertRaises(ValidationError):
            settings_service.validate_settings_patch({"locale": "en"})

    def test_rejects_unknown_timezone(self):
        with self.assertRaises(ValidationError):
            settings_service.validate_settings_patch({"timezone": "Mars/Olympus"})

    def test_rejects_bad_currency(self):
        with self.assertRaises(ValidationError):
            settings_service.validate_settings_patch({"currency": "DIRHAM"})

    def test_rejects_unknown_keys(self):
        with self.assertRaises(ValidationError):
            settings_service.validate_settings_patch({"tax_rate_bps": 2000})

    def test_rejects_non_dict(self):
        with self.assertRaises(ValidationError):
            settings_service.validate_settings_patch(["locale", "fr"])

    def test_failed_update_leaves_settings_unchanged(self):
        with self.assertRaises(ValidationError):
            settings_service.update_settings(self.tenant.id, {"locale": "ar", "crates_per_pallet": 0})
        db.session.rollback()
        self.assertEqual(settings_service.get_settings(self.tenant.id).locale, "fr")


if __name__ == "__main__":
    unittest.main()
