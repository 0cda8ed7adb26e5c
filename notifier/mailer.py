"""
Notification dispatch.

The processor talks to a mailer through one call:

    send(recipients, subject, body) -> SendResult

Mailers never raise for delivery problems; they report them in the
SendResult and the processor decides what that means for the event.

  SmtpMailer    plain-text mail over SMTP (STARTTLS + login, Gmail app
                passwords work out of the box)
  DryRunMailer  logs the message and keeps it in an outbox, no network
"""
import logging
import smtplib
from dataclasses import dataclass, field
from email.message import EmailMessage
from email.utils import make_msgid
from typing import Any, Dict, Iterable, List, Optional

from config import Config

logger = logging.getLogger(__name__)


@dataclass
class SendResult:
    """
    Normalized result from a mailer send() call.

    Fields:
      ok:          True if the mailer considers the send successful.
      mailer_name: Short identifier for the mailer (e.g. "smtp").
      recipients:  The de-duplicated recipient list actually addressed.
      message_id:  Message-ID header of the sent mail, if any.
      error:       Human-readable error string on failure.
    """

    ok: bool
    mailer_name: str
    recipients: List[str] = field(default_factory=list)
    message_id: Optional[str] = None
    error: Optional[str] = None


def normalise_recipients(recipients: Iterable[Optional[str]]) -> List[str]:
    """Drop blanks and case-insensitive duplicates, keeping first-seen order."""
    seen: set[str] = set()
    result: List[str] = []
    for addr in recipients:
        addr = (addr or "").strip()
        if not addr or addr.lower() in seen:
            continue
        seen.add(addr.lower())
        result.append(addr)
    return result


class BaseMailer:
    """Base interface for mailers."""

    name: str = "base"

    def send(self, recipients: Iterable[Optional[str]], subject: str, body: str) -> SendResult:
        raise NotImplementedError("BaseMailer.send() must be implemented by subclasses")

    def check(self) -> Dict[str, Any]:
        """Report whether the mailer is usable, for the CLI check command."""
        return {"ok": True, "mailer": self.name}


class SmtpMailer(BaseMailer):
    """Sends plain-text UTF-8 mail through a single SMTP account."""

    name = "smtp"

    def __init__(self, config: Config) -> None:
        self.host = config.smtp_host
        self.port = config.smtp_port
        self.user = config.smtp_user
        self.password = config.smtp_password
        self.sender = (config.smtp_from or config.smtp_user or config.operator_email or "").strip()
        self.starttls = config.smtp_starttls
        self.timeout = config.smtp_timeout_seconds

    def _open(self) -> smtplib.SMTP:
        s = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
        s.ehlo()
        if self.starttls:
            s.starttls()
            s.ehlo()
        if self.user and self.password:
            # Gmail shows app passwords in groups of four; spaces are not part of it
            s.login(self.user, self.password.replace(" ", ""))
        return s

    def _build_message(self, recipients: List[str], subject: str, body: str) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = self.sender
        msg["To"] = ", ".join(recipients)
        msg["Subject"] = subject
        domain = self.sender.split("@")[-1] if "@" in self.sender else None
        msg["Message-ID"] = make_msgid(domain=domain)
        msg.set_content(body)
        return msg

    def send(self, recipients: Iterable[Optional[str]], subject: str, body: str) -> SendResult:
        to = normalise_recipients(recipients)
        if not to:
            return SendResult(ok=False, mailer_name=self.name, error="no recipients")
        if not self.sender:
            return SendResult(
                ok=False, mailer_name=self.name, recipients=to,
                error="no sender address (set SMTP_FROM or SMTP_USER)",
            )

        msg = self._build_message(to, subject, body)
        try:
            with self._open() as s:
                s.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("SMTP send to %s failed: %s", ", ".join(to), e)
            return SendResult(ok=False, mailer_name=self.name, recipients=to, error=str(e))

        logger.info("Mail sent to %s: %s", ", ".join(to), subject)
        return SendResult(ok=True, mailer_name=self.name, recipients=to, message_id=msg["Message-ID"])

    def check(self) -> Dict[str, Any]:
        info: Dict[str, Any] = {"mailer": self.name, "host": self.host, "port": self.port}
        try:
            with self._open() as s:
                s.noop()
            info["ok"] = True
        except (smtplib.SMTPException, OSError) as e:
            info["ok"] = False
            info["error"] = str(e)
        return info


class DryRunMailer(BaseMailer):
    """
    Logs instead of sending.  Every message is kept in ``outbox`` so tests and
    the preview command can inspect exactly what would have gone out.
    """

    name = "dry_run"

    def __init__(self) -> None:
        self.outbox: List[Dict[str, Any]] = []

    def send(self, recipients: Iterable[Optional[str]], subject: str, body: str) -> SendResult:
        to = normalise_recipients(recipients)
        if not to:
            return SendResult(ok=False, mailer_name=self.name, error="no recipients")
        self.outbox.append({"recipients": to, "subject": subject, "body": body})
        logger.info("[dry-run] Would send to %s: %s", ", ".join(to), subject)
        return SendResult(ok=True, mailer_name=self.name, recipients=to, message_id="dry-run")


def build_mailer(config: Config) -> BaseMailer:
    if config.mail_dry_run:
        logger.info("MAIL_DRY_RUN is set — notifications will be logged, not sent")
        return DryRunMailer()
    return SmtpMailer(config)
