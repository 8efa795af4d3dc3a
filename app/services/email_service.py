import html
import logging
import smtplib
import ssl
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Any, Mapping, Optional, Protocol
from urllib.parse import urlencode

from app.core.config import settings
from app.core.result import Err, ErrorKind, Ok, Result
from app.models import TokenPurpose

logger = logging.getLogger(__name__)

BRAND = "Psicoreinventar"
SEND_FAILED = "Failed to send email"


class Notifier(Protocol):
    def send(
        self,
        kind: TokenPurpose,
        email: str,
        token: str,
        context: Optional[Mapping[str, Any]] = None,
    ) -> Result[None]: ...


@dataclass(frozen=True)
class EmailTemplate:
    subject: str
    path: str
    preheader: str
    title: str
    intro: str
    cta_text: str
    footer_note: str


TEMPLATES = {
    TokenPurpose.EMAIL_VERIFICATION: EmailTemplate(
        subject="Verify your email address",
        path="/verify-email",
        preheader=f"Confirm your email to start using {BRAND}.",
        title="Verify your email",
        intro="Use the code below or the button to confirm your email address.",
        cta_text="Verify email",
        footer_note="If you did not create an account, you can ignore this email.",
    ),
    TokenPurpose.PASSWORD_RESET: EmailTemplate(
        subject="Reset your password",
        path="/new-password",
        preheader=f"Reset your {BRAND} password.",
        title="Reset your password",
        intro="We received a request to reset your password.",
        cta_text="Reset password",
        footer_note="If you did not request a password reset, you can ignore this email.",
    ),
    TokenPurpose.DOCTOR_REGISTRATION: EmailTemplate(
        subject=f"Welcome to the {BRAND} Team!",
        path="/doctor-register",
        preheader=f"Your {BRAND} therapist profile was approved.",
        title="Complete your registration",
        intro="Your application was approved. Use the code below to finish setting up your profile.",
        cta_text="Complete registration",
        footer_note="If you did not apply to join our team, you can ignore this email.",
    ),
}


def build_link(kind: TokenPurpose, token: str) -> str:
    return f"{settings.frontend_url.rstrip('/')}{TEMPLATES[kind].path}?{urlencode({'token': token})}"


class EmailNotifier:
    """Delivers token emails through the configured backend (smtp, console or disabled)"""

    def __init__(self, backend: Optional[str] = None):
        self.backend = backend or settings.email_backend

    @staticmethod
    def _from_header() -> Optional[str]:
        if settings.smtp_from:
            return settings.smtp_from
        if settings.smtp_from_email and settings.smtp_from_name:
            return f"{settings.smtp_from_name} <{settings.smtp_from_email}>"
        return settings.smtp_from_email

    @staticmethod
    def _render_html(template: EmailTemplate, *, name: str, code: str, link: str, ttl_note: str) -> str:
        link_esc = html.escape(link, quote=True)
        return f"""<!doctype html>
<html lang="en">
  <head>
    <meta charset="utf-8" />
    <title>{html.escape(template.title)}</title>
  </head>
  <body style="margin:0; padding:0; background-color:#f6f6f6;">
    <div style="display:none; max-height:0; overflow:hidden;">{html.escape(template.preheader)}</div>
    <table role="presentation" width="100%" style="padding:24px 0; font-family:Arial, Helvetica, sans-serif;">
      <tr>
        <td align="center">
          <table role="presentation" width="600" style="max-width:600px; background:#ffffff; border-radius:12px; padding:24px;">
            <tr><td style="font-size:20px; font-weight:800;">{BRAND}</td></tr>
            <tr><td style="padding-top:12px; font-size:18px; font-weight:700;">{html.escape(template.title)}</td></tr>
            <tr><td style="padding-top:10px; font-size:14px;">Hi {html.escape(name)},</td></tr>
            <tr><td style="padding-top:6px; font-size:14px;">{html.escape(template.intro)}</td></tr>
            <tr><td style="padding:18px 0; font-size:28px; font-weight:800; letter-spacing:6px; text-align:center;">{html.escape(code)}</td></tr>
            <tr>
              <td align="center">
                <a href="{link_esc}" style="display:inline-block; padding:12px 18px; background:#4f46e5; color:#ffffff; border-radius:8px; text-decoration:none; font-weight:700;">{html.escape(template.cta_text)}</a>
              </td>
            </tr>
            <tr><td style="padding-top:14px; font-size:12px; color:#777777;">{html.escape(ttl_note)}</td></tr>
            <tr><td style="padding-top:14px; font-size:12px; color:#777777;">{html.escape(template.footer_note)}</td></tr>
          </table>
        </td>
      </tr>
    </table>
  </body>
</html>"""

    def build_message(
        self,
        kind: TokenPurpose,
        email: str,
        token: str,
        context: Optional[Mapping[str, Any]] = None,
    ) -> EmailMessage:
        template = TEMPLATES[kind]
        context = context or {}
        name = context.get("name") or "there"
        link = build_link(kind, token)
        ttl_note = f"This code expires in {context.get('ttl_minutes', 30)} minutes."

        msg = EmailMessage()
        msg["From"] = self._from_header() or ""
        msg["To"] = email
        msg["Subject"] = template.subject
        msg.set_content(
            f"Hi {name},\n\n{template.intro}\n\nCode: {token}\nLink: {link}\n\n{ttl_note}\n{template.footer_note}"
        )
        msg.add_alternative(
            self._render_html(template, name=name, code=token, link=link, ttl_note=ttl_note),
            subtype="html",
        )
        return msg

    def send(
        self,
        kind: TokenPurpose,
        email: str,
        token: str,
        context: Optional[Mapping[str, Any]] = None,
    ) -> Result[None]:
        if self.backend == "console":
            logger.info("[console email] %s to %s: %s", TEMPLATES[kind].subject, email, build_link(kind, token))
            return Ok(None)
        if self.backend != "smtp":
            logger.warning("Email backend %r does not deliver; %s email to %s dropped", self.backend, kind.value, email)
            return Err(ErrorKind.DEPENDENCY, SEND_FAILED)

        if not settings.smtp_host or not self._from_header():
            logger.error("SMTP misconfigured (host/from). Email not sent to %s", email)
            return Err(ErrorKind.DEPENDENCY, SEND_FAILED)

        msg = self.build_message(kind, email, token, context)
        try:
            with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=settings.smtp_timeout_seconds) as server:
                server.ehlo()
                if settings.smtp_use_tls:
                    server.starttls(context=ssl.create_default_context())
                    server.ehlo()
                if settings.smtp_username and settings.smtp_password:
                    server.login(settings.smtp_username, settings.smtp_password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError):
            logger.exception("Could not send %s email to %s", kind.value, email)
            return Err(ErrorKind.DEPENDENCY, SEND_FAILED)

        logger.info("Sent %s email to %s", kind.value, email)
        return Ok(None)
