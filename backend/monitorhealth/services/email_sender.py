"""Email sender service - delivers failure and recovery alerts via SMTP."""
import asyncio
import logging
import smtplib
import ssl
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import List
from dataclasses import dataclass

from ..config import settings
from ..exceptions import DeliveryError

logger = logging.getLogger(__name__)


@dataclass
class EmailConfig:
    """SMTP configuration for sending emails."""
    host: str
    port: int
    username: str
    password: str
    use_tls: bool = True
    from_address: str = ""

    @classmethod
    def from_settings(cls) -> "EmailConfig":
        return cls(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_username,
            password=settings.smtp_password,
            use_tls=settings.smtp_use_tls,
            from_address=settings.smtp_from,
        )


class EmailSenderService:
    """Notifier for monitor alerts. Raises DeliveryError when an email cannot be sent."""

    def __init__(self, config: EmailConfig = None):
        self.config = config or EmailConfig.from_settings()

    def _build_failure_body(self, monitor, outcome) -> str:
        validation_errors = "\n".join(outcome.validation_errors) if outcome.validation_errors else "None"
        return "\n".join([
            f"Monitor: {monitor.name}",
            f"URL: {monitor.url}",
            "Status: FAILURE",
            f"Time: {outcome.checked_at.strftime('%Y-%m-%d %H:%M:%S UTC')}",
            "",
            "Error Details:",
            outcome.error_message or "Unknown error",
            "",
            f"HTTP Status: {outcome.http_status or 'N/A'}",
            f"Latency: {outcome.latency_ms}ms",
            "",
            "Validation Errors:",
            validation_errors,
            "",
            "---",
            "This is an automated alert from MonitorHealth.",
        ])

    def _build_recovery_body(self, monitor, outcome) -> str:
        return "\n".join([
            f"Monitor: {monitor.name}",
            f"URL: {monitor.url}",
            "Status: RECOVERED",
            f"Time: {outcome.checked_at.strftime('%Y-%m-%d %H:%M:%S UTC')}",
            "",
            "The service is now responding successfully.",
            "",
            f"HTTP Status: {outcome.http_status}",
            f"Latency: {outcome.latency_ms}ms",
            "",
            "---",
            "This is an automated alert from MonitorHealth.",
        ])

    async def send_failure_alert(self, monitor, outcome, recipients: List[str]):
        subject = f"Monitor Alert: \"{monitor.name}\" is DOWN"
        await self.send_email(recipients, subject, self._build_failure_body(monitor, outcome))

    async def send_recovery_alert(self, monitor, outcome, recipients: List[str]):
        subject = f"Monitor Recovered: \"{monitor.name}\" is UP"
        await self.send_email(recipients, subject, self._build_recovery_body(monitor, outcome))

    async def send_email(self, recipients: List[str], subject: str, body: str):
        """Send a plain-text email without blocking the event loop."""
        if not self.config.host:
            raise DeliveryError("Email not configured - missing SMTP host")
        if not recipients:
            raise DeliveryError("No recipients specified for email")

        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._send_sync, list(recipients), subject, body)
        logger.info(f"Email sent successfully to {len(recipients)} recipient(s): {subject}")

    def _send_sync(self, recipients: List[str], subject: str, body: str):
        config = self.config
        from_addr = config.from_address or config.username

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = from_addr
        msg["To"] = ", ".join(recipients)
        msg.attach(MIMEText(body, "plain"))

        try:
            with smtplib.SMTP(config.host, config.port, timeout=30) as server:
                if config.use_tls:
                    server.starttls(context=ssl.create_default_context())
                if config.username and config.password:
                    server.login(config.username, config.password)
                server.sendmail(from_addr, recipients, msg.as_string())
        except smtplib.SMTPAuthenticationError as e:
            logger.error(f"SMTP authentication failed for user '{config.username}': {e}")
            raise DeliveryError(f"SMTP authentication failed: {e}") from e
        except smtplib.SMTPRecipientsRefused as e:
            raise DeliveryError(f"Recipients refused by server: {e}") from e
        except smtplib.SMTPException as e:
            raise DeliveryError(f"SMTP error: {type(e).__name__}: {e}") from e
        except OSError as e:
            # Connection refused, DNS failure, timeout
            raise DeliveryError(f"Failed to connect to SMTP server {config.host}:{config.port}: {e}") from e
