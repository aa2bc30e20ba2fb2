"""
AWS SES email delivery.

Transactional mail (verification codes, password resets), security alerts
(lockouts, two-factor changes), listing and vendor onboarding notices and
notification campaign emails all go through EmailService.send_email.
"""

import html
import logging
from typing import Optional
import boto3
from botocore.exceptions import ClientError, BotoCoreError
from marketplace.core.config import settings

logger = logging.getLogger(__name__)


class EmailService:
    """
    Service for sending emails via AWS SES.

    Supports both development (sandbox) and production modes.
    """

    def __init__(self):
        session_kwargs = {
            'region_name': settings.AWS_REGION,
        }

        # Explicit credentials when provided, otherwise the IAM role
        if settings.AWS_ACCESS_KEY_ID and settings.AWS_SECRET_ACCESS_KEY:
            session_kwargs['aws_access_key_id'] = settings.AWS_ACCESS_KEY_ID
            session_kwargs['aws_secret_access_key'] = settings.AWS_SECRET_ACCESS_KEY

        self.ses_client = boto3.client('ses', **session_kwargs)

    @property
    def sender(self) -> str:
        return f"{settings.AWS_SES_FROM_NAME} <{settings.AWS_SES_FROM_EMAIL}>"

    def send_email(self, to_email: str, subject: str, html_body: str, text_body: str) -> bool:
        """
        Send one message through SES.

        Returns:
            bool: True if SES accepted the message, False otherwise
        """
        try:
            response = self.ses_client.send_email(
                Source=self.sender,
                Destination={'ToAddresses': [to_email]},
                Message={
                    'Subject': {'Data': subject, 'Charset': 'UTF-8'},
                    'Body': {
                        'Html': {'Data': html_body, 'Charset': 'UTF-8'},
                        'Text': {'Data': text_body, 'Charset': 'UTF-8'}
                    }
                }
            )

            message_id = response.get('MessageId')
            logger.info(f"Email '{subject}' sent to {to_email} (MessageId: {message_id})")
            return True

        except ClientError as e:
            error_code = e.response['Error']['Code']
            error_message = e.response['Error']['Message']
            logger.error(f"AWS SES ClientError: {error_code} - {error_message}")

            if error_code == 'MessageRejected':
                logger.error(f"Email rejected: {error_message}")
            elif error_code == 'MailFromDomainNotVerified':
                logger.error("Sender email not verified in SES")

            return False

        except BotoCoreError as e:
            logger.error(f"AWS BotoCoreError: {str(e)}")
            return False

    def send_verification_email(self, to_email: str, verification_code: str, user_name: Optional[str] = None) -> bool:
        greeting = _greeting(user_name)
        lines = [
            f"Thank you for joining {settings.PROJECT_NAME}. Use the code below to verify your email address:",
            verification_code,
            "This code will expire in 15 minutes.",
            "If you didn't create an account, you can safely ignore this email.",
        ]
        return self.send_email(
            to_email,
            "Verify Your Email",
            _render_html("Verify Your Email Address", greeting, lines, highlight=verification_code),
            _render_text(greeting, lines),
        )

    def send_password_reset_email(self, to_email: str, reset_token: str, user_name: Optional[str] = None) -> bool:
        reset_url = f"{settings.FRONTEND_URL}/reset-password?token={reset_token}"
        greeting = _greeting(user_name)
        lines = [
            "We received a request to reset your password. Open the link below to choose a new one:",
            reset_url,
            "The link expires in 1 hour. If you didn't ask for this, ignore this email.",
        ]
        return self.send_email(
            to_email,
            "Reset Your Password",
            _render_html("Reset Your Password", greeting, lines),
            _render_text(greeting, lines),
        )

    def send_lockout_alert(self, to_email: str, locked_minutes: int, ip_address: str) -> bool:
        """Tell the account owner their login was locked after repeated failures."""
        greeting = _greeting(None)
        lines = [
            f"Your account was temporarily locked after too many failed sign-in attempts from {ip_address}.",
            f"You can try again in {locked_minutes} minutes.",
            "If this wasn't you, reset your password and enable two-factor authentication.",
        ]
        return self.send_email(
            to_email,
            "Security Alert: Account Locked",
            _render_html("Account Temporarily Locked", greeting, lines),
            _render_text(greeting, lines),
        )

    def send_two_factor_alert(self, to_email: str, enabled: bool, user_name: Optional[str] = None) -> bool:
        state = "enabled" if enabled else "disabled"
        greeting = _greeting(user_name)
        lines = [
            f"Two-factor authentication was {state} on your account.",
            "If you didn't make this change, contact support immediately.",
        ]
        return self.send_email(
            to_email,
            f"Security Alert: Two-Factor Authentication {state.capitalize()}",
            _render_html(f"Two-Factor Authentication {state.capitalize()}", greeting, lines),
            _render_text(greeting, lines),
        )

    def send_notification_email(self, to_email: str, subject: str, title: str, message: str) -> bool:
        greeting = _greeting(None)
        return self.send_email(
            to_email,
            subject,
            _render_html(title, greeting, [message]),
            _render_text(greeting, [title, message]),
        )

    def send_free_listing_expired_email(self, to_email: str, property_title: str, user_name: Optional[str] = None) -> bool:
        greeting = _greeting(user_name)
        lines = [
            f'Your free listing "{property_title}" has expired after {settings.FREE_LISTING_DAYS} days '
            "and is no longer visible to customers.",
            "Subscribe to a plan to restore it and keep your listings live:",
            f"{settings.FRONTEND_URL}/subscription",
        ]
        return self.send_email(
            to_email,
            "Your Free Listing Has Expired",
            _render_html("Free Listing Expired", greeting, lines),
            _render_text(greeting, lines),
        )

    def send_vendor_application_email(self, to_email: str, application_id: str, decision: Optional[str] = None,
                                      note: Optional[str] = None, user_name: Optional[str] = None) -> bool:
        """
        Vendor onboarding mail: a receipt when decision is None, otherwise the
        approved/rejected outcome with the reviewer's note.
        """
        greeting = _greeting(user_name)
        if decision is None:
            heading = "Application Received"
            lines = [
                f"We received your vendor application {application_id}. Our team reviews applications within 2 business days.",
            ]
        elif decision == "approved":
            heading = "Application Approved"
            lines = [
                f"Your vendor application {application_id} was approved. You can now publish listings and services.",
            ]
        else:
            heading = "Application Not Approved"
            lines = [f"Your vendor application {application_id} was not approved."]
        if note:
            lines.append(note)

        return self.send_email(
            to_email,
            f"Vendor Application {application_id}: {heading}",
            _render_html(heading, greeting, lines),
            _render_text(greeting, lines),
        )


def _greeting(user_name: Optional[str]) -> str:
    return f"Hi {user_name}," if user_name else "Hi there,"


def _render_html(heading: str, greeting: str, lines, highlight: Optional[str] = None) -> str:
    paragraphs = []
    for line in lines:
        if highlight is not None and line == highlight:
            paragraphs.append(
                '<div style="background-color: #f8f9fa; border-radius: 8px; padding: 30px; text-align: center; '
                'font-size: 36px; font-weight: 700; letter-spacing: 8px; color: #0F766E; '
                f'font-family: \'Courier New\', monospace;">{html.escape(line)}</div>'
            )
        else:
            paragraphs.append(
                f'<p style="margin: 0 0 20px 0; color: #666666; font-size: 16px; line-height: 1.5;">{html.escape(line)}</p>'
            )
    body = "\n".join(paragraphs)

    return f"""
<!DOCTYPE html>
<html>
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{html.escape(heading)}</title>
</head>
<body style="margin: 0; padding: 0; font-family: Arial, sans-serif; background-color: #f4f4f4;">
    <table role="presentation" style="width: 100%; border-collapse: collapse;">
        <tr>
            <td align="center" style="padding: 40px 0;">
                <table role="presentation" style="width: 600px; border-collapse: collapse; background-color: #ffffff; border-radius: 8px;">
                    <tr>
                        <td style="padding: 40px 40px 20px 40px; text-align: center;">
                            <h1 style="margin: 0; color: #333333; font-size: 26px;">{html.escape(heading)}</h1>
                        </td>
                    </tr>
                    <tr>
                        <td style="padding: 0 40px 40px 40px;">
                            <p style="margin: 0 0 20px 0; color: #666666; font-size: 16px;">{html.escape(greeting)}</p>
                            {body}
                        </td>
                    </tr>
                    <tr>
                        <td style="padding: 20px 40px; background-color: #f8f9fa; border-top: 1px solid #e5e7eb;">
                            <p style="margin: 0; color: #999999; font-size: 12px; text-align: center;">
                                &copy; {html.escape(settings.AWS_SES_FROM_NAME)}. All rights reserved.
                            </p>
                        </td>
                    </tr>
                </table>
            </td>
        </tr>
    </table>
</body>
</html>
"""


def _render_text(greeting: str, lines) -> str:
    body = "\n\n".join(lines)
    return f"{greeting}\n\n{body}\n\n---\n{settings.AWS_SES_FROM_NAME}\n"


# Singleton instance
email_service = EmailService()
