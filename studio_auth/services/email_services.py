import logging
import secrets
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from studio_auth.config import Settings

logger = logging.getLogger(__name__)


def generate_token() -> str:
    return secrets.token_hex(32)


def generate_otp() -> str:
    return str(secrets.randbelow(900000) + 100000)


class EmailService:
    def __init__(self, settings: Settings):
        self.settings = settings

    @property
    def configured(self) -> bool:
        return bool(self.settings.SMTP_HOST and self.settings.FROM_EMAIL)

    def generate_token(self) -> str:
        return generate_token()

    def generate_otp(self) -> str:
        return generate_otp()

    def send_verification_email(self, to_email: str, token: str, name: str) -> None:
        link = f"{self.settings.FRONTEND_URL}/verify-email?token={token}"
        text = (
            f"Hi {name},\n\n"
            f"Please confirm your email address by opening the link below:\n{link}\n\n"
            f"The link expires in {self.settings.EMAIL_VERIFICATION_EXPIRE_HOURS} hours."
        )
        html = (
            f"<p>Hi {name},</p>"
            f"<p>Please confirm your email address:</p>"
            f'<p><a href="{link}">Verify email</a></p>'
            f"<p>The link expires in {self.settings.EMAIL_VERIFICATION_EXPIRE_HOURS} hours.</p>"
        )
        self._send(to_email, "Verify your email address", text, html)

    def send_otp_email(self, to_email: str, otp: str, name: str) -> None:
        text = (
            f"Hi {name},\n\n"
            f"Your verification code is: {otp}\n"
            f"It expires in {self.settings.OTP_EXPIRE_MINUTES} minutes."
        )
        html = (
            f"<p>Hi {name},</p>"
            f"<p>Your verification code is:</p>"
            f'<h2 style="letter-spacing:4px">{otp}</h2>'
            f"<p>It expires in {self.settings.OTP_EXPIRE_MINUTES} minutes.</p>"
        )
        self._send(to_email, "Your verification code", text, html)

    def _send(self, to_email: str, subject: str, text: str, html: str) -> None:
        if not self.configured:
            logger.warning("SMTP not configured; skipping '%s' email to %s", subject, to_email)
            return

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.settings.FROM_EMAIL
        msg["To"] = to_email
        msg.attach(MIMEText(text, "plain"))
        msg.attach(MIMEText(html, "html"))

        with smtplib.SMTP(
            self.settings.SMTP_HOST, self.settings.SMTP_PORT, timeout=self.settings.SMTP_TIMEOUT
        ) as server:
            server.starttls()
            if self.settings.SMTP_USER:
                server.login(self.settings.SMTP_USER, self.settings.SMTP_PASS)
            server.send_message(msg)
        logger.info("Sent '%s' email to %s", subject, to_email)
