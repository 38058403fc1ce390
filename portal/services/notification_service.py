"""
Email delivery for invitations.

The mailer is picked once per app in ``create_app`` and stored on
``app.extensions['mailer']`` so tests can swap in a recording double.
"""
import logging
import re
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape
from typing import Optional

from flask import current_app

from portal.config import SMTP_SETTINGS, require_settings
from portal.exceptions import NotificationError

logger = logging.getLogger(__name__)


class SmtpMailer:

    def __init__(self, config):
        self.config = config

    def send(self, to_email: str, subject: str, html_content: str, text_content: Optional[str] = None):
        require_settings(self.config, SMTP_SETTINGS)

        msg = MIMEMultipart('alternative')
        msg['Subject'] = subject
        msg['From'] = self.config['SMTP_FROM']
        msg['To'] = to_email

        if text_content is None:
            text_content = re.sub(r'<[^>]+>', '', html_content)
        msg.attach(MIMEText(text_content, 'plain'))
        msg.attach(MIMEText(html_content, 'html'))

        try:
            with smtplib.SMTP(self.config['SMTP_HOST'], self.config['SMTP_PORT'],
                              timeout=self.config['EMAIL_TIMEOUT']) as server:
                if self.config['SMTP_USE_TLS']:
                    server.starttls()
                if self.config.get('SMTP_USER'):
                    server.login(self.config['SMTP_USER'], self.config['SMTP_PASSWORD'])
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            raise NotificationError() from e

        logger.info("Email sent to %s", to_email)


class LogMailer:
    """Used when SEND_EMAILS is off. Records the recipient only."""

    def send(self, to_email: str, subject: str, html_content: str, text_content: Optional[str] = None):
        logger.info("Email delivery disabled, skipped %r to %s", subject, to_email)


def build_mailer(config):
    if config.get('SEND_EMAILS'):
        return SmtpMailer(config)
    return LogMailer()


class NotificationService:

    @staticmethod
    def registration_link(token: str) -> str:
        base_url = current_app.config['PUBLIC_BASE_URL'].rstrip('/')
        return f"{base_url}/register?token={token}"

    @staticmethod
    def send_invitation(invitation, token: str) -> None:
        """Email the registration link for ``invitation``.

        Raises NotificationError or ConfigurationError; the invitation
        itself is never touched here.
        """
        link = NotificationService.registration_link(token)
        company = invitation.broker.company_name if invitation.broker else "Broker Portal"
        expiry = invitation.expires_at.strftime('%Y-%m-%d %H:%M UTC')
        note = f"<p>{escape(invitation.message)}</p>" if invitation.message else ""

        html_content = f"""
        <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
          <h2>Welcome to {escape(company)}'s Lending Portal</h2>
          <p>Hello,</p>
          <p>You have been invited to join {escape(company)}'s lending portal. To complete your registration, please click the button below:</p>
          {note}
          <div style="text-align: center; margin: 30px 0;">
            <a href="{link}" style="background-color: #007bff; color: white; padding: 12px 24px; text-decoration: none; border-radius: 4px; display: inline-block;">
              Complete Registration
            </a>
          </div>
          <p>If the button doesn't work, you can copy and paste this link into your browser:</p>
          <p style="word-break: break-all; color: #666;">{link}</p>
          <p>This invitation link expires on {expiry}.</p>
          <hr style="margin: 30px 0; border: none; border-top: 1px solid #eee;" />
          <p style="color: #666; font-size: 12px;">If you didn't expect this invitation, please ignore this email.</p>
        </div>
        """

        mailer = current_app.extensions['mailer']
        mailer.send(
            invitation.email,
            f"Welcome to {company}'s Lending Portal - Complete Your Registration",
            html_content
        )
