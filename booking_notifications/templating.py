"""
Booking notification templates.

Maps a notification type and the booking data supplied by the caller to a
subject, a plain-text message (also used for SMS and WhatsApp) and an HTML
body for email. Rendering is pure: no database or network access.
"""
from datetime import date, datetime
from typing import NamedTuple, Optional
import re

from django.conf import settings
from django.template.loader import render_to_string

from booking_notifications.channels.base import NotificationPayload
from booking_notifications.models import Audience, ChannelType, NotificationType


class RenderedTemplate(NamedTuple):
    subject: str
    message: str
    html: str


GENERIC_TEMPLATE = RenderedTemplate(
    subject='Notification',
    message='You have a new notification.',
    html='<p>You have a new notification.</p>',
)

SUBJECTS = {
    Audience.CUSTOMER.value: {
        NotificationType.CONFIRMATION.value: 'Booking Confirmed - {spa_name}',
        NotificationType.MODIFICATION.value: 'Booking Modified - {spa_name}',
        NotificationType.CANCELLATION.value: 'Booking Cancelled - {spa_name}',
        NotificationType.REMINDER.value: 'Appointment Reminder - {spa_name}',
    },
    Audience.STAFF.value: {
        NotificationType.CONFIRMATION.value: 'New Booking: {customer_name} on {booking_date}',
        NotificationType.MODIFICATION.value: 'Booking Updated: {customer_name} on {booking_date}',
        NotificationType.CANCELLATION.value: 'Booking Cancelled: {customer_name} on {booking_date}',
        NotificationType.REMINDER.value: 'Upcoming Appointment: {customer_name} at {booking_time}',
    },
}

_BLANK_LINES = re.compile(r'\n[ \t]*(\n[ \t]*)+')


def format_booking_date(value) -> str:
    """'2026-01-05' -> 'Monday, January 5, 2026'; anything unparseable is returned as given"""
    if not value:
        return ''
    if isinstance(value, datetime):
        value = value.date()
    if not isinstance(value, date):
        try:
            value = date.fromisoformat(str(value).strip()[:10])
        except ValueError:
            return str(value)
    return f"{value:%A}, {value:%B} {value.day}, {value.year}"


def _normalise_services(services, currency: str) -> list:
    normalised = []
    for service in services or []:
        if not isinstance(service, dict):
            service = {'name': str(service)}
        normalised.append({
            'name': service.get('name', ''),
            'duration': service.get('duration'),
            'price': service.get('price'),
            'currency': service.get('currency') or currency,
        })
    return normalised


def build_context(data: dict) -> dict:
    currency = data.get('currency') or getattr(settings, 'NOTIFICATION_DEFAULT_CURRENCY', 'AED')
    return {
        'customer_name': data.get('customerName') or 'Valued Customer',
        'spa_name': data.get('spaName') or 'Spa',
        'spa_address': data.get('spaAddress'),
        'spa_phone': data.get('spaPhone'),
        'booking_date': format_booking_date(data.get('bookingDate') or data.get('date')),
        'booking_time': data.get('bookingTime') or data.get('time') or '',
        'services': _normalise_services(data.get('services'), currency),
        'staff_name': data.get('staffName'),
        'total_amount': data.get('totalAmount'),
        'currency': currency,
        'booking_id': data.get('bookingId'),
        'cancellation_policy': data.get('cancellationPolicy'),
        'notes': data.get('notes'),
    }


def _tidy_text(text: str) -> str:
    return _BLANK_LINES.sub('\n\n', text).strip()


def get_template(notification_type: str, template_data: Optional[dict],
                 audience: str = Audience.CUSTOMER.value) -> RenderedTemplate:
    if template_data is None:
        return GENERIC_TEMPLATE

    subject_format = SUBJECTS.get(audience, {}).get(notification_type)
    if subject_format is None:
        return GENERIC_TEMPLATE

    context = build_context(template_data)
    name = f'{audience}_{notification_type}'
    return RenderedTemplate(
        subject=subject_format.format(**context),
        message=_tidy_text(render_to_string(f'booking_notifications/text/{name}.txt', context)),
        html=render_to_string(f'booking_notifications/email/{name}.html', context).strip(),
    )


def build_payload(channel: str, notification_type: str, recipient: dict, template_data: Optional[dict],
                  audience: str = Audience.CUSTOMER.value) -> NotificationPayload:
    """Channel-shaped payload: email gets subject, text and HTML; SMS and WhatsApp get the text only"""
    rendered = get_template(notification_type, template_data, audience)
    if channel == ChannelType.EMAIL.value:
        return NotificationPayload(
            to=recipient['email'],
            message=rendered.message,
            subject=rendered.subject,
            html=rendered.html,
            template_data=template_data,
        )
    return NotificationPayload(to=recipient['phone'], message=rendered.message, template_data=template_data)
