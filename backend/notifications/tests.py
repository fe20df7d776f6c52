from django.contrib.auth import get_user_model
from django.test import TestCase
from rest_framework.test import APIClient

from .models import Notification
from .services import notify_admins_of_registration, notify_users


User = get_user_model()


class NotificationServiceTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(
            email="notif@example.com",
            password="pass1234",
            name="Ana Lopez",
        )

    def test_notify_users_persists_notification(self):
        created = notify_users(
            recipients=[self.user],
            title="New notification",
            body="Something changed.",
            url="/notifications",
            type="system",
            dedupe_key="notif:test:1",
        )

        self.assertEqual(Notification.objects.count(), 1)
        self.assertEqual(created, 1)
        self.assertEqual(Notification.objects.get().title, "New notification")

    def test_notify_users_respects_dedupe_window(self):
        created_first = notify_users(
            recipients=[self.user],
            title="Reminder",
            body="First",
            dedupe_key="notif:window:1",
            dedupe_within_seconds=3600,
        )
        created_second = notify_users(
            recipients=[self.user],
            title="Reminder",
            body="Second",
            dedupe_key="notif:window:1",
            dedupe_within_seconds=3600,
        )

        self.assertEqual(created_first, 1)
        self.assertEqual(created_second, 0)
        self.assertEqual(Notification.objects.count(), 1)


class RegistrationFanoutTests(TestCase):
    def setUp(self):
        self.admin_a = User.objects.create_user(
            email="a-admin@example.com", password="x", name="Admin A", role=User.ROLE_ADMIN
        )
        self.admin_b = User.objects.create_user(
            email="b-admin@example.com", password="x", name="Admin B", role=User.ROLE_ADMIN
        )
        User.objects.create_user(
            email="inactive-admin@example.com",
            password="x",
            name="Inactive",
            role=User.ROLE_ADMIN,
            is_active=False,
        )
        self.registrant = User.objects.create_user(
            email="registrant@example.com",
            password="x",
            name="Jane Doe",
            registration_number="reg17000000000001234567890",
        )

    def test_every_active_admin_is_notified_once(self):
        created = notify_admins_of_registration(self.registrant)
        again = notify_admins_of_registration(self.registrant)

        self.assertEqual(created, 2)
        self.assertEqual(again, 0)
        recipients = set(Notification.objects.values_list("recipient__email", flat=True))
        self.assertEqual(recipients, {"a-admin@example.com", "b-admin@example.com"})
        notification = Notification.objects.filter(recipient=self.admin_a).get()
        self.assertEqual(notification.dedupe_key, f"registration:{self.registrant.pk}")
        self.assertIn("Jane Doe", notification.body)

    def test_registrant_is_not_notified(self):
        notify_admins_of_registration(self.registrant)
        self.assertFalse(Notification.objects.filter(recipient=self.registrant).exists())


class NotificationAPITests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.user = User.objects.create_user(email="me@example.com", password="x", name="Me")
        self.other = User.objects.create_user(email="other@example.com", password="x", name="Other")
        self.client.force_authenticate(user=self.user)
        notify_users(recipients=[self.user], title="One")
        notify_users(recipients=[self.user], title="Two")
        notify_users(recipients=[self.other], title="Not mine")

    def test_list_only_returns_own_notifications(self):
        res = self.client.get("/api/notifications/")
        self.assertEqual(res.status_code, 200)
        titles = {item["title"] for item in res.data}
        self.assertEqual(titles, {"One", "Two"})

    def test_unread_count_and_mark_all_read(self):
        res = self.client.get("/api/notifications/unread-count/")
        self.assertEqual(res.data["unread"], 2)

        res = self.client.post("/api/notifications/mark-all-read/")
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.data["updated"], 2)

        res = self.client.get("/api/notifications/unread-count/")
        self.assertEqual(res.data["unread"], 0)

    def test_mark_read_single(self):
        notification = Notification.objects.filter(recipient=self.user).first()
        res = self.client.post(f"/api/notifications/{notification.id}/mark-read/")
        self.assertEqual(res.status_code, 200)
        notification.refresh_from_db()
        self.assertTrue(notification.is_read)
