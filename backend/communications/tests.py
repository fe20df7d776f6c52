from unittest import mock

from django.core import mail
from django.test import TestCase
from django.test import override_settings

from .email_service import send_email
from .models import EmailDelivery


@override_settings(EMAIL_BACKEND="django.core.mail.backends.locmem.EmailBackend")
class EmailServiceTests(TestCase):
	def test_send_email_creates_sent_delivery(self):
		result = send_email(
			recipient_email="Test@Example.com ",
			subject="Hello",
			body_text="Message",
			category="transactional",
		)

		self.assertTrue(result.sent)
		self.assertEqual(EmailDelivery.objects.count(), 1)
		delivery = EmailDelivery.objects.first()
		self.assertEqual(delivery.status, EmailDelivery.STATUS_SENT)
		self.assertEqual(delivery.recipient_email, "test@example.com")
		self.assertIsNotNone(delivery.sent_at)
		self.assertEqual(len(mail.outbox), 1)

	def test_send_email_idempotency_skips_duplicate(self):
		key = "registration:abc"

		first = send_email(
			recipient_email="test@example.com",
			subject="Registration",
			body_text="First",
			idempotency_key=key,
		)
		second = send_email(
			recipient_email="test@example.com",
			subject="Registration",
			body_text="Second",
			idempotency_key=key,
		)

		self.assertTrue(first.sent)
		self.assertFalse(second.sent)
		self.assertEqual(second.delivery.pk, first.delivery.pk)
		self.assertEqual(EmailDelivery.objects.count(), 1)
		self.assertEqual(len(mail.outbox), 1)

	def test_send_email_with_attachment_and_inline_image(self):
		png = b"\x89PNG\r\n\x1a\nfake"
		result = send_email(
			recipient_email="test@example.com",
			subject="Your pass",
			body_text="See attached",
			body_html='<img src="cid:qrcode">',
			attachments=[("qrcode.png", png, "image/png")],
			inline_images=[("qrcode", png)],
		)

		self.assertTrue(result.sent)
		self.assertEqual(result.delivery.attachment_names, ["qrcode.png"])
		message = mail.outbox[0]
		self.assertEqual(message.mixed_subtype, "related")
		filenames = [a[0] for a in message.attachments if isinstance(a, tuple)]
		self.assertIn("qrcode.png", filenames)
		self.assertIn("Content-ID: <qrcode>", message.message().as_string())

	def test_send_email_records_failure_without_raising(self):
		with mock.patch(
			"communications.email_service.EmailMultiAlternatives.send",
			side_effect=RuntimeError("smtp down"),
		):
			result = send_email(
				recipient_email="test@example.com",
				subject="Hello",
				body_text="Message",
			)

		self.assertFalse(result.sent)
		delivery = EmailDelivery.objects.get()
		self.assertEqual(delivery.status, EmailDelivery.STATUS_FAILED)
		self.assertIn("smtp down", delivery.error_message)

	def test_send_email_can_skip_body_logging(self):
		result = send_email(
			recipient_email="test@example.com",
			subject="Credentials",
			body_text="Password: hunter2",
			body_html="<p>Password: hunter2</p>",
			log_body=False,
		)

		self.assertTrue(result.sent)
		self.assertEqual(result.delivery.body_text, "")
		self.assertEqual(result.delivery.body_html, "")
		self.assertIn("hunter2", mail.outbox[0].body)
