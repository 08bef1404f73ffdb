"""EmailNotifier: tell a poem's owner that new feedback arrived.

Delivery is a single SMTP attempt with STARTTLS. Callers that must not fail
on email problems (feedback submission) catch and log whatever this raises.
"""

import html
import logging
import smtplib
from email.message import EmailMessage

from settings import Settings

logger = logging.getLogger(__name__)


class EmailNotifier:
    def __init__(self, settings: Settings):
        self.smtp_host = settings.smtp_host
        self.smtp_port = settings.smtp_port
        self.smtp_user = settings.smtp_user
        self.smtp_password = settings.smtp_password
        self.frontend_url = settings.frontend_url

    @property
    def configured(self) -> bool:
        return bool(self.smtp_host and self.smtp_user and self.smtp_password)

    def send_feedback_notification(self, admin_email: str, summary: dict) -> None:
        """Send one notification.

        Args:
            admin_email: Recipient, the owner of the poem.
            summary: poem_title, viewer_name, liked, message, rating.

        Raises:
            smtplib.SMTPException, OSError: when delivery fails.
        """
        if not self.configured:
            logger.info("SMTP not configured; skipping feedback notification")
            return
        message = self._build_email_message(admin_email, summary)
        with smtplib.SMTP(self.smtp_host, self.smtp_port) as server:
            server.starttls()
            server.login(self.smtp_user, self.smtp_password)
            server.send_message(message)
        logger.info("Sent feedback notification for %r", summary.get("poem_title"))

    def _build_email_message(self, admin_email: str, summary: dict) -> EmailMessage:
        title = summary.get("poem_title", "")
        viewer = summary.get("viewer_name", "")
        rating = summary.get("rating")
        text = summary.get("message")
        reaction = "Loved it!" if summary.get("liked") else "Had thoughts"
        feedback_link = f"{self.frontend_url}/admin/feedback"

        message = EmailMessage()
        message["Subject"] = f'New Feedback for "{title}"'
        message["From"] = f'"Poetic Vault" <{self.smtp_user}>'
        message["To"] = admin_email

        lines = [f'Poem: "{title}"', f"From: {viewer}", f"Reaction: {reaction}"]
        if rating:
            lines.append(f"Rating: {rating}/5")
        if text:
            lines.append(f'Message: "{text}"')
        lines += ["", f"View all feedback: {feedback_link}"]
        message.set_content("\n".join(lines))

        parts = [
            f'<h3>Poem: "{html.escape(title)}"</h3>',
            f"<p><strong>From:</strong> {html.escape(viewer)}</p>",
            f"<p><strong>Reaction:</strong> {reaction}</p>",
        ]
        if rating:
            parts.append(f"<p><strong>Rating:</strong> {'&#9733;' * rating} ({rating}/5)</p>")
        if text:
            parts.append(f"<p><strong>Message:</strong></p><blockquote>{html.escape(text)}</blockquote>")
        parts.append(f'<p><a href="{feedback_link}">View All Feedback</a></p>')
        body = (
            '<div style="font-family: Georgia, serif; max-width: 600px; margin: 0 auto;">'
            "<h2>New Poem Feedback</h2>"
            + "".join(parts)
            + "<p><small>Sent from your Poetic Vault</small></p></div>"
        )
        message.add_alternative(body, subtype="html")
        return message
