from __future__ import annotations

from urllib.parse import urlencode

from flask import current_app


OUTBOX_KEY = "pagemark_outbox"


def deliver(message: dict) -> None:
    # Outgoing mail is logged; tests read it back from the app outbox.
    if current_app.testing:
        current_app.extensions.setdefault(OUTBOX_KEY, []).append(message)
    current_app.logger.info(
        "mail queued to=%s subject=%r", message["to"], message["subject"]
    )


def _link(path: str, token: str) -> str:
    base = current_app.config["APP_BASE_URL"].rstrip("/")
    return f"{base}{path}?{urlencode({'token': token})}"


def send_verification_email(email: str, token: str) -> None:
    link = _link("/auth/new-verification", token)
    deliver(
        {
            "from": current_app.config["MAIL_SENDER"],
            "to": email,
            "subject": "Confirm your email address",
            "body": f"Open this link to confirm your email address:\n\n{link}\n",
            "token": token,
        }
    )


def send_password_reset_email(email: str, token: str) -> None:
    link = _link("/new-password", token)
    deliver(
        {
            "from": current_app.config["MAIL_SENDER"],
            "to": email,
            "subject": "Reset your password",
            "body": f"Open this link to choose a new password:\n\n{link}\n",
            "token": token,
        }
    )
