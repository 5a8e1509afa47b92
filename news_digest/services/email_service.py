import asyncio
import html
import logging
import smtplib
from datetime import datetime, timezone
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from pathlib import Path
from typing import List, Optional, Sequence, Tuple
from zoneinfo import ZoneInfo

from jinja2 import Environment, FileSystemLoader, select_autoescape
from markupsafe import Markup

from news_digest.core.exceptions import EmailServiceError
from news_digest.schemas import Digest, LeadImage, SendResult
from news_digest.services.rate_limiter import EMAIL, RateLimiter
from news_digest.services.sanitizer import clean_digest_html, html_to_text, mask_email, sanitize_error_message

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"
SUBJECT_PREFIX = "FMT News Digest"


class SMTPTransport:
    """Blocking smtplib transport; EmailService calls it from a worker thread"""

    def __init__(self, host: str, port: int = 587, username: Optional[str] = None,
                 password: Optional[str] = None, use_tls: bool = True, timeout: float = 30.0):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout

    def _connect(self) -> smtplib.SMTP:
        if self.port == 465:
            server = smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout)
        else:
            server = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
            if self.use_tls:
                server.starttls()
        if self.username and self.password:
            server.login(self.username, self.password)
        return server

    def verify(self) -> None:
        with self._connect() as server:
            server.noop()

    def send(self, message: MIMEMultipart) -> None:
        with self._connect() as server:
            server.send_message(message)


class EmailService:
    """Renders the digest email and delivers it one recipient at a time"""

    def __init__(self, transport: SMTPTransport, rate_limiter: RateLimiter, sender: str,
                 timezone_name: str = "Asia/Kuala_Lumpur", templates_dir: Optional[Path] = None):
        self.transport = transport
        self.rate_limiter = rate_limiter
        self.sender = sender
        self.timezone = ZoneInfo(timezone_name)
        self.env = Environment(
            loader=FileSystemLoader(str(templates_dir or TEMPLATES_DIR)),
            autoescape=select_autoescape(["html"]),
        )

    @staticmethod
    def subject_for(digest: Digest) -> str:
        return f"{SUBJECT_PREFIX}: {digest.title}"

    def render_digest_email(self, digest: Digest, lead_image: Optional[LeadImage] = None,
                            generated_at: Optional[datetime] = None) -> Tuple[str, str]:
        """
        Render the shared email body

        Returns:
            (html, plain text) pair
        """
        local_time = (generated_at or datetime.now(timezone.utc)).astimezone(self.timezone)
        lead_title = digest.articles[0].title if digest.articles else digest.title

        body_html = self.env.get_template("digest_email.html").render(
            digest=digest,
            content=Markup(self._format_content(digest.content)),
            lead_image=lead_image,
            lead_title=lead_title,
            generated_date=local_time.strftime("%A, %d %B %Y"),
            generated_time=local_time.strftime("%I:%M %p"),
            timezone_label=self.timezone.key,
        )
        return body_html, html_to_text(body_html)

    @staticmethod
    def _format_content(content: str) -> str:
        """Model HTML is cleaned; plain text is split into paragraphs"""
        if "<" in content:
            return clean_digest_html(content)
        paragraphs = [p.strip() for p in content.split("\n\n") if p.strip()]
        return "".join(f"<p>{html.escape(p)}</p>" for p in paragraphs)

    def _build_message(self, recipient: str, subject: str, body_html: str, body_text: str) -> MIMEMultipart:
        message = MIMEMultipart("alternative")
        message["From"] = self.sender
        message["To"] = recipient
        message["Subject"] = subject
        message.attach(MIMEText(body_text, "plain", "utf-8"))
        message.attach(MIMEText(body_html, "html", "utf-8"))
        return message

    async def verify_connection(self) -> None:
        """
        Raises:
            EmailServiceError: The SMTP server could not be reached or rejected the login
        """
        try:
            await asyncio.to_thread(self.transport.verify)
        except (smtplib.SMTPException, OSError) as e:
            message = sanitize_error_message(f"{type(e).__name__}: {e}")
            logger.error(f"Email service connection test failed: {message}")
            raise EmailServiceError(f"Email transport verification failed: {message}") from e
        logger.info("Email transport verified")

    async def send_digest(self, digest: Digest, recipients: Sequence[str],
                          lead_image: Optional[LeadImage] = None) -> List[SendResult]:
        """
        Send the digest to each recipient separately

        Returns:
            One result per recipient, in the same order

        Raises:
            EmailServiceError: Transport verification failed before any send
        """
        await self.verify_connection()

        subject = self.subject_for(digest)
        body_html, body_text = self.render_digest_email(digest, lead_image)
        results: List[SendResult] = []

        for recipient in recipients:
            masked = mask_email(recipient)

            if not self.rate_limiter.try_consume(EMAIL):
                logger.warning(f"Email rate limit reached, not sending to {masked}")
                results.append(SendResult(success=False, error="Email rate limit exceeded for the current window"))
                continue

            try:
                message = self._build_message(recipient, subject, body_html, body_text)
                await asyncio.to_thread(self.transport.send, message)
            except Exception as e:
                error = sanitize_error_message(f"{type(e).__name__}: {e}")
                logger.error(f"Error sending email to {masked}: {error}")
                results.append(SendResult(success=False, error=error))
                continue

            logger.info(f"✅ Digest sent to {masked}")
            results.append(SendResult(success=True))

        return results
