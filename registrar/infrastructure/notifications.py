"""WhatsApp deep links for registration notifications.

Nothing is sent from the server: the links are returned to the client, which
opens them to hand the prefilled message to WhatsApp.
"""
from datetime import date
from urllib.parse import quote

from ..config import settings


def _registration_text(first_name: str, last_name: str, email: str, phone: str | None, course_name: str) -> str:
    return (
        "🎓 *New Student Registration*\n\n"
        f"*Name:* {first_name} {last_name}\n"
        f"*Email:* {email}\n"
        f"*Phone:* {phone or 'Not provided'}\n"
        f"*Course:* {course_name}\n"
        f"*Date:* {date.today().isoformat()}\n\n"
        "Please review and approve this registration."
    )


def _approval_text(first_name: str, course_name: str) -> str:
    return (
        "🎉 *Registration Approved*\n\n"
        f"Dear {first_name},\n\n"
        f"Your registration for *{course_name}* has been approved!\n\n"
        "Welcome to Eck School of Business. You will receive further instructions via email."
    )


def _rejection_text(first_name: str, course_name: str, reason: str) -> str:
    return (
        "❌ *Registration Update*\n\n"
        f"Dear {first_name},\n\n"
        f"Your registration for *{course_name}* requires attention.\n\n"
        f"*Reason:* {reason}\n\n"
        "Please contact us for more information."
    )


def whatsapp_url(text: str, phone: str | None = None) -> str:
    return f"https://wa.me/{phone or settings.WHATSAPP_PHONE}?text={quote(text, safe='')}"


def registration_link(first_name: str, last_name: str, email: str, phone: str | None, course_name: str) -> str:
    return whatsapp_url(_registration_text(first_name, last_name, email, phone, course_name))


def approval_link(first_name: str, course_name: str) -> str:
    return whatsapp_url(_approval_text(first_name, course_name))


def rejection_link(first_name: str, course_name: str, reason: str | None) -> str:
    return whatsapp_url(_rejection_text(first_name, course_name, reason or "No additional details provided"))
