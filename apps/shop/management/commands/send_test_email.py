from __future__ import annotations

from smtplib import SMTPException

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

from core.utils.email_service import send_artisashop_email


class Command(BaseCommand):
    help = "Send a test email through the configured email backend."

    def add_arguments(self, parser):
        parser.add_argument("to", help="Recipient email address")
        parser.add_argument(
            "--subject",
            default="Artisashop test email",
            help="Email subject",
        )
        parser.add_argument(
            "--message",
            default="This is a test email sent from Artisashop.",
            help="Plain-text email message body",
        )

    def handle(self, *args, **options):
        uses_smtp = settings.EMAIL_BACKEND.endswith("smtp.EmailBackend")
        if uses_smtp and not settings.EMAIL_HOST_PASSWORD:
            raise CommandError(
                "EMAIL_HOST_PASSWORD is not set. "
                "Set it in your environment before sending through SMTP."
            )

        to_email = options["to"]

        try:
            send_artisashop_email(
                subject=options["subject"],
                message=options["message"],
                recipient_list=[to_email],
            )
        except (SMTPException, OSError, ValueError, RuntimeError) as exc:
            raise CommandError(f"Email send failed: {exc}") from exc

        self.stdout.write(self.style.SUCCESS(f"Test email sent to {to_email}"))
