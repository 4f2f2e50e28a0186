"""Email sender service - renders alert templates and sends them via SMTP."""
import asyncio
import logging
import smtplib
import ssl
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from pathlib import Path
from typing import List, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from ..config import settings

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"

SERVER_IS_UP_TEMPLATE = "server_is_up"
SERVER_IS_DOWN_TEMPLATE = "server_is_down"
HARDWARE_INCIDENT_TEMPLATE = "hardware_incident"


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
            from_address=settings.email_from,
        )


class EmailSenderService:
    """Service for sending email alerts via SMTP."""

    def __init__(self, config: Optional[EmailConfig] = None, template_dir: Path = TEMPLATE_DIR):
        self._config = config
        self.jinja_env = Environment(
            loader=FileSystemLoader(str(template_dir)),
            autoescape=select_autoescape(["html"]),
        )

    @property
    def config(self) -> EmailConfig:
        return self._config or EmailConfig.from_settings()

    def _parse_recipients(self, to_address: str) -> List[str]:
        """Parse comma-separated email addresses into a list."""
        if not to_address:
            return []
        return [addr.strip() for addr in to_address.split(",") if addr.strip()]

    def render(self, template: str, context: dict) -> str:
        return self.jinja_env.get_template(f"{template}.html").render(**context)

    async def build_and_send_email(self, template: str, context: dict, address: str, subject: str) -> bool:
        """Render ``template`` with ``context`` and send it to ``address``."""
        try:
            html = self.render(template, context)
        except Exception as e:
            logger.error(f"Failed to render email template '{template}': {type(e).__name__}: {e}")
            return False
        return await self.send_email(address, subject, html)

    async def send_email(self, to_address: str, subject: str, html: str) -> bool:
        """Send an HTML email. Returns True on success, False on failure."""
        config = self.config
        logger.info(f"Attempting to send email: {subject}")

        if not config.host or not to_address:
            logger.warning("Email not configured - missing SMTP host or recipient address")
            return False

        recipients = self._parse_recipients(to_address)
        if not recipients:
            logger.warning("No valid recipients found in address")
            return False

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = config.from_address or config.username
        msg["To"] = ", ".join(recipients)
        msg.attach(MIMEText(html, "html"))

        loop = asyncio.get_running_loop()
        try:
            # smtplib is blocking, keep it off the event loop
            await loop.run_in_executor(None, self._deliver, config, recipients, msg)
            logger.info(f"Email sent successfully to {len(recipients)} recipient(s): {subject}")
            return True
        except smtplib.SMTPAuthenticationError as e:
            logger.error(f"SMTP authentication failed for user '{config.username}': {e}")
            return False
        except smtplib.SMTPRecipientsRefused as e:
            logger.error(f"Recipients refused by server: {e}")
            return False
        except smtplib.SMTPException as e:
            logger.error(f"SMTP error: {type(e).__name__}: {e}")
            return False
        except (ConnectionRefusedError, TimeoutError) as e:
            logger.error(f"Could not reach SMTP server {config.host}:{config.port}: {e}")
            return False
        except Exception as e:
            logger.error(f"Unexpected error sending email: {type(e).__name__}: {e}")
            return False

    def _deliver(self, config: EmailConfig, recipients: List[str], msg: MIMEMultipart):
        from_addr = config.from_address or config.username
        with smtplib.SMTP(config.host, config.port, timeout=30) as server:
            if config.use_tls:
                server.starttls(context=ssl.create_default_context())
            if config.username and config.password:
                server.login(config.username, config.password)
            server.sendmail(from_addr, recipients, msg.as_string())


# Global instance
email_sender_service = EmailSenderService()
