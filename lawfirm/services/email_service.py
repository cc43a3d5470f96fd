"""SMTP email delivery.

Every caller treats email as best effort: ``send`` logs failures and returns
``False`` instead of raising, so a dead mail server never fails the request
that triggered the message.
"""

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from lawfirm import config

logger = logging.getLogger(__name__)


class SmtpEmailSender:
    def __init__(
        self,
        host: str = config.SMTP_HOST,
        port: int = config.SMTP_PORT,
        username: str = config.SMTP_USER,
        password: str = config.SMTP_PASSWORD,
        sender: str = config.SMTP_FROM,
        use_tls: bool = config.SMTP_USE_TLS,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.sender = sender
        self.use_tls = use_tls

    def is_configured(self) -> bool:
        return bool(self.host)

    def _build_message(self, to: str, subject: str, html_body: str) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["From"] = self.sender
        msg["To"] = to
        msg["Subject"] = subject
        msg.attach(MIMEText(html_body, "html", "utf-8"))
        return msg

    def send(self, to: str, subject: str, html_body: str) -> bool:
        if not to:
            return False
        if not self.is_configured():
            logger.info(f"[EMAIL DISABLED] To={to} | Subject={subject}")
            return False

        msg = self._build_message(to, subject, html_body)
        try:
            with smtplib.SMTP(self.host, self.port, timeout=10) as server:
                if self.use_tls:
                    server.starttls()
                if self.username and self.password:
                    server.login(self.username, self.password)
                server.sendmail(self.sender, [to], msg.as_string())
            logger.info(f"Email sent to {to}: {subject}")
            return True
        except (smtplib.SMTPException, OSError) as e:
            logger.warning(f"SMTP send to {to} failed: {e}")
            return False


def get_email_sender() -> SmtpEmailSender:
    return SmtpEmailSender()
