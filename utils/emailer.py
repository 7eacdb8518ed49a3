import logging
import smtplib
from email.message import EmailMessage

from flask import current_app

logger = logging.getLogger(__name__)


def send_email(to_email: str, subject: str, body: str):
    host = current_app.config.get("SMTP_HOST")
    port = current_app.config.get("SMTP_PORT", 587)
    username = current_app.config.get("SMTP_USERNAME")
    password = current_app.config.get("SMTP_PASSWORD")
    from_email = current_app.config.get("SMTP_FROM_EMAIL") or username
    use_tls = current_app.config.get("SMTP_USE_TLS", True)

    if not host or not from_email:
        return False, "Email not configured"
    if not to_email:
        return False, "No recipient"

    msg = EmailMessage()
    msg["From"] = from_email
    msg["To"] = to_email
    msg["Subject"] = subject
    msg.set_content(body)

    try:
        with smtplib.SMTP(host, port, timeout=10) as server:
            if use_tls:
                server.starttls()
            if username and password:
                server.login(username, password)
            server.send_message(msg)
        return True, None
    except (smtplib.SMTPException, OSError) as exc:
        logger.warning("SMTP delivery to %s failed: %s", to_email, exc)
        return False, str(exc)


def _slot_line(booking) -> str:
    court_name = booking.court.name if booking.court else f"court #{booking.court_id}"
    return (
        f"{court_name} on {booking.booking_date.isoformat()} "
        f"{booking.start_time.strftime('%H:%M')}-{booking.end_time.strftime('%H:%M')}"
    )


def send_booking_confirmation(booking, user):
    body = (
        f"Hi {user.full_name or user.email},\n\n"
        f"Your booking #{booking.id} is confirmed: {_slot_line(booking)}.\n"
        f"Total: {booking.total_price} {current_app.config.get('CURRENCY', 'EUR')}\n"
    )
    return send_email(user.email, f"Booking #{booking.id} confirmed", body)


def send_booking_cancellation(booking, user):
    lines = [
        f"Hi {user.full_name or user.email},",
        "",
        f"Your booking #{booking.id} ({_slot_line(booking)}) has been cancelled.",
    ]
    if booking.cancellation_reason:
        lines.append(f"Reason: {booking.cancellation_reason}")
    if booking.refund_status == "credited":
        lines.append(f"{booking.total_price} has been credited to your wallet.")
    elif booking.refund_status == "refunded":
        lines.append(f"{booking.total_price} has been refunded to your original payment method.")
    return send_email(user.email, f"Booking #{booking.id} cancelled", "\n".join(lines) + "\n")
