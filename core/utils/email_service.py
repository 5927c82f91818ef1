import logging
from typing import Iterable, List, Optional

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.mail import EmailMultiAlternatives
from django.core.validators import validate_email
from django.utils.html import escape, linebreaks

logger = logging.getLogger(__name__)


def clean_recipients(recipients: Iterable[str]) -> List[str]:
    """Valid addresses only, lowercased, first occurrence kept"""
    cleaned = []
    for raw in recipients or []:
        address = str(raw or '').strip().lower()
        if not address or address in cleaned:
            continue
        try:
            validate_email(address)
        except ValidationError:
            logger.warning(f'Dropping invalid email recipient: {address}')
            continue
        cleaned.append(address)
    return cleaned


def render_html(message: str) -> str:
    """Wrap a plain-text body in the Artisashop mail layout"""
    return (
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">'
        '<h2 style="color: #8b5e3c;">Artisashop</h2>'
        f'{linebreaks(escape(message.strip()))}'
        f'<p style="color: #888; font-size: 12px;">{escape(settings.SITE_URL)}</p>'
        '</div>'
    )


def send_artisashop_email(subject: str, message: str, recipient_list: Iterable[str],
                          html_message: Optional[str] = None) -> int:
    """
    Send a plain-text email with an HTML alternative from DEFAULT_FROM_EMAIL.

    When no HTML body is given, the plain text is rendered into the
    default layout.

    Raises:
        ValueError: empty subject or no valid recipient
        RuntimeError: the backend reported nothing sent
        SMTPException, OSError: transport errors from the backend
    """
    if not subject or not isinstance(subject, str):
        raise ValueError('Email subject is required')

    recipients = clean_recipients(recipient_list)
    if not recipients:
        raise ValueError('No valid email recipient')

    body = message if isinstance(message, str) else str(message)

    email = EmailMultiAlternatives(
        subject=subject,
        body=body,
        from_email=settings.DEFAULT_FROM_EMAIL,
        to=recipients,
    )
    email.attach_alternative(html_message or render_html(body), 'text/html')

    if email.send(fail_silently=False) < 1:
        raise RuntimeError('Email backend sent nothing')

    logger.info(f'Email "{subject}" sent to {", ".join(recipients)}')
    return len(recipients)
