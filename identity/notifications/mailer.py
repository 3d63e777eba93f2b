"""Outbound email delivery and the fire-and-forget OTP notifier."""

from __future__ import annotations

import logging
import smtplib
from concurrent.futures import Future, ThreadPoolExecutor
from email.mime.text import MIMEText
from typing import Protocol

from identity.auth.models import OtpPurpose
from identity.core.config import MailConfig

LOGGER = logging.getLogger(__name__)

_OTP_SUBJECTS = {
    OtpPurpose.REGISTER: "Your verification code",
    OtpPurpose.RESET_PASSWORD: "Your password reset code",
}


class Mailer(Protocol):
    def send(self, to_email: str, subject: str, body: str) -> None: ...


class SmtpMailer:
    """Plain-text mail over SMTP with STARTTLS."""

    def __init__(self, config: MailConfig) -> None:
        self._config = config

    def send(self, to_email: str, subject: str, body: str) -> None:
        msg = MIMEText(body, "plain", "utf-8")
        msg["Subject"] = subject
        msg["From"] = f"{self._config.from_name} <{self._config.from_email}>"
        msg["To"] = to_email

        with smtplib.SMTP(
            self._config.smtp_host,
            self._config.smtp_port,
            timeout=self._config.timeout_seconds,
        ) as server:
            server.starttls()
            server.login(self._config.smtp_user, self._config.smtp_password)
            server.sendmail(self._config.from_email, [to_email], msg.as_string())
        LOGGER.info("email_sent", extra={"email": to_email})


class LogMailer:
    """Development mailer: records the message instead of delivering it."""

    def send(self, to_email: str, subject: str, body: str) -> None:
        LOGGER.info("email_not_configured %s", subject, extra={"email": to_email})
        # Bodies carry live codes; only visible with DEBUG enabled locally.
        LOGGER.debug("email_not_configured_body %s", body, extra={"email": to_email})


def build_mailer(config: MailConfig) -> Mailer:
    if config.smtp_user and config.smtp_password:
        return SmtpMailer(config)
    return LogMailer()


class OtpNotifier:
    """Delivers one-time codes off the request thread."""

    def __init__(
        self,
        mailer: Mailer,
        *,
        ttl_minutes: int,
        executor: ThreadPoolExecutor | None = None,
    ) -> None:
        self._mailer = mailer
        self._ttl_minutes = ttl_minutes
        self._executor = executor or ThreadPoolExecutor(
            max_workers=2, thread_name_prefix="otp-mail"
        )

    def dispatch(self, email: str, code: str, purpose: OtpPurpose) -> Future[None]:
        """Queue delivery and return immediately; failures are only logged."""
        subject = _OTP_SUBJECTS[purpose]
        body = (
            f"Your verification code is: {code}\n\n"
            f"This code expires in {self._ttl_minutes} minutes."
        )
        future = self._executor.submit(self._mailer.send, email, subject, body)
        future.add_done_callback(lambda done: self._log_failure(done, email))
        return future

    @staticmethod
    def _log_failure(future: Future[None], email: str) -> None:
        exc = future.exception()
        if exc is not None:
            LOGGER.error(
                "otp_delivery_failed",
                extra={"email": email},
                exc_info=(type(exc), exc, exc.__traceback__),
            )

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False)
