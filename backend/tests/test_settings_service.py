import unittest
from datetime import datetime, timedelta

from bookcycle import create_app
from bookcycle.errors import ValidationError
from bookcycle.extensions import db
from bookcycle.models import SystemSettings
from bookcycle.models.auth import ROLE_ADMIN, ROLE_TEACHER
from bookcycle.services import settings_service
from bookcycle.time_utils import utcnow


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
        db.session.query(SystemSettings).delete()
        db.session.commit()

    def test_defaults_created_on_first_read(self):
        settings = settings_service.get_settings()

        self.assertIsNone(settings.request_deadline)
        self.assertTrue(settings.teacher_registration_enabled)
        self.assertTrue(settings.admin_registration_enabled)
        self.assertEqual(db.session.query(SystemSettings).count(), 1)

        settings_service.get_settings()
        self.assertEqual(db.session.query(SystemSettings).count(), 1)

    def test_window_open_without_deadline(self):
        self.assertTrue(settings_service.is_request_window_open())

    def test_window_closes_after_deadline(self):
        deadline = datetime(2026, 3, 1, 12, 0)
        settings_service.update_settings(request_deadline=deadline)

        self.assertTrue(settings_service.is_request_window_open(now=deadline - timedelta(minutes=1)))
        self.assertTrue(settings_service.is_request_window_open(now=deadline))
        self.assertFalse(settings_service.is_request_window_open(now=deadline + timedelta(seconds=1)))

    def test_iso_deadline_is_normalized_to_utc(self):
        settings = settings_service.update_settings(request_deadline="2026-03-01T17:30:00+05:30")

        self.assertEqual(settings.request_deadline, datetime(2026, 3, 1, 12, 0))

    def test_past_deadline_closes_window_now(self):
        settings_service.update_settings(request_deadline=utcnow() - timedelta(days=1))

        self.assertFalse(settings_service.is_request_window_open())

    def test_clearing_deadline_reopens_window(self):
        settings_service.update_settings(request_deadline=utcnow() - timedelta(days=1))
        settings_service.update_settings(request_deadline=None)

        self.assertTrue(settings_service.is_request_window_open())

    def test_bad_deadline_rejected(self):
        with self.assertRaises(ValidationError):
            settings_service.update_settings(request_deadline="next tuesday")
        with self.assertRaises(ValidationError):
            settings_service.update_settings(request_deadline=12345)

    def test_registration_toggles_are_per_role(self):
        settings_service.update_settings(teacher_registration_enabled=False)

        self.assertFalse(settings_service.is_registration_enabled(ROLE_TEACHER))
        self.assertTrue(settings_service.is_registration_enabled(ROLE_ADMIN))
        self.assertFalse(settings_service.is_registration_enabled("principal"))

    def test_unpassed_fields_are_untouched(self):
        deadline = datetime(2026, 5, 1)
        settings_service.update_settings(request_deadline=deadline)
        settings_service.update_settings(admin_registration_enabled=False)

        settings = settings_service.get_settings()
        self.assertEqual(settings.request_deadline, deadline)
        self.assertFalse(settings.admin_registration_enabled)

    def test_toggle_must_be_boolean(self):
        with self.assertRaises(ValidationError):
            settings_service.update_settings(teacher_registration_enabled="yes")


if __name__ == "__main__":
    unittest.main()
