import sendgrid
from sendgrid.helpers.mail import Mail, Email, To, Content
from typing import Optional, Dict
from config.config import Config
from reviewflow.utils.logger import get_logger

logger = get_logger(__name__)


class SendGridClient:
    """Wrapper for SendGrid email operations"""

    def __init__(self):
        self.api_key = Config.SENDGRID_API_KEY
        self.from_email = Config.SENDGRID_FROM_EMAIL

        if self.api_key:
            self.client = sendgrid.SendGridAPIClient(api_key=self.api_key)
        else:
            self.client = None
            logger.warning("SendGrid API key not configured")

    def send_email(self, to_email: str, subject: str, html_content: str,
                   plain_content: str = None) -> Optional[Dict]:
        """Send email via SendGrid"""
        if not self.client:
            logger.info(f"Email to {to_email} skipped, SendGrid not configured")
            return None

        try:
            message = Mail(
                from_email=Email(self.from_email, "ReviewFlow"),
                to_emails=To(to_email),
                subject=subject,
                html_content=Content("text/html", html_content)
            )

            if plain_content:
                message.plain_text_content = Content("text/plain", plain_content)

            response = self.client.send(message)

            return {
                'status_code': response.status_code,
                'message_id': response.headers.get('X-Message-Id')
            }
        except Exception as e:
            logger.error(f"Error sending email to {to_email}: {str(e)}")
            return None

    def send_review_notification(self, to_email: str, name: str, title: str,
                                 message: str, details: Dict, review_link: str) -> Optional[Dict]:
        """Send a review lifecycle notification email"""
        subject = f"ReviewFlow - {title}"
        rows = ''.join(
            f"<p><strong>{label}:</strong> {value}</p>"
            for label, value in details.items() if value
        )
        html_content = f"""
        <html>
            <body style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
                <h2>{title}</h2>
                <p>Hi {name},</p>
                <p>{message}</p>
                <div style="background-color: #f5f5f5; padding: 20px; border-radius: 8px; margin: 20px 0;">
                    {rows}
                </div>
                <p style="margin: 30px 0;">
                    <a href="{review_link}"
                       style="background-color: #2196F3; color: white; padding: 14px 28px;
                              text-decoration: none; border-radius: 4px; display: inline-block;">
                        View Review
                    </a>
                </p>
            </body>
        </html>
        """
        plain_lines = [f"{label}: {value}" for label, value in details.items() if value]
        plain_content = "\n".join([f"Hi {name},", "", message, ""] + plain_lines + ["", review_link])

        return self.send_email(to_email, subject, html_content, plain_content)
