import asyncio
import logging
from decimal import Decimal
from typing import Optional

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail

from renderlab.core.config import settings
from renderlab.core.exceptions import EmailSendError
from renderlab.models.usage_period import ActionType

logger = logging.getLogger(__name__)

_ACTION_LABELS = {
    ActionType.ENHANCEMENT: "Enhancement",
    ActionType.CONSULTATION: "Widget",
}

_BASE_STYLE = """
    body {{ font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; line-height: 1.6; color: #333; }}
    .container {{ max-width: 600px; margin: 0 auto; padding: 20px; }}
    .header {{ background: {color}; color: white; padding: 20px; text-align: center; border-radius: 8px 8px 0 0; }}
    .content {{ background: #f9f9f9; padding: 20px; border-radius: 0 0 8px 8px; }}
    .usage-bar {{ background: #e0e0e0; height: 20px; border-radius: 10px; overflow: hidden; margin: 20px 0; }}
    .usage-fill {{ background: {color}; height: 100%; width: {fill}%; }}
    .stat-value {{ font-size: 24px; font-weight: bold; color: {color}; }}
    .cta {{ display: inline-block; background: {color}; color: white; padding: 12px 24px; text-decoration: none; border-radius: 6px; margin-top: 20px; }}
"""


def usage_alert_80_template(action_type: ActionType, used: int, limit: int) -> str:
    label = _ACTION_LABELS[action_type].lower()
    return f"""<!DOCTYPE html>
<html>
<head><style>{_BASE_STYLE.format(color="#F59E0B", fill=80)}</style></head>
<body>
  <div class="container">
    <div class="header"><h1>Usage Alert</h1></div>
    <div class="content">
      <p>Hi there,</p>
      <p>You've used <strong>80%</strong> of your monthly {label} transforms.</p>
      <div class="usage-bar"><div class="usage-fill"></div></div>
      <p><span class="stat-value">{used}</span> used of <span class="stat-value">{limit}</span></p>
      <p>Don't worry - your widgets will continue to work even if you exceed your limit. Any additional transforms will be billed as overages at your plan's rate.</p>
      <p>Consider upgrading your plan for more transforms and lower overage rates.</p>
      <a href="{settings.app_url}/billing" class="cta">Manage Plan</a>
    </div>
  </div>
</body>
</html>
"""


def usage_alert_100_template(action_type: ActionType, used: int, limit: int, overage_rate: Decimal) -> str:
    label = _ACTION_LABELS[action_type].lower()
    return f"""<!DOCTYPE html>
<html>
<head><style>{_BASE_STYLE.format(color="#EF4444", fill=100)}</style></head>
<body>
  <div class="container">
    <div class="header"><h1>Limit Reached</h1></div>
    <div class="content">
      <p>Hi there,</p>
      <p>You've reached your monthly {label} transform limit.</p>
      <div class="usage-bar"><div class="usage-fill"></div></div>
      <p><span class="stat-value">{used}</span> used of <span class="stat-value">{limit}</span></p>
      <p>Additional transforms will be billed at <strong>${Decimal(overage_rate):.2f}</strong> per transform.</p>
      <p>Upgrade your plan now to get more transforms, lower overage rates, and more features.</p>
      <a href="{settings.app_url}/billing" class="cta">Upgrade Plan</a>
    </div>
  </div>
</body>
</html>
"""


def usage_alert_subject(action_type: ActionType, threshold: int) -> str:
    label = _ACTION_LABELS[action_type]
    if threshold >= 100:
        return f"RenderLab: {label} Limit Reached"
    return f"RenderLab: {label} Usage at {threshold}%"


class NotificationService:
    """Outbound email via SendGrid. Sends never raise; they report success."""

    def __init__(self, api_key: Optional[str] = None, from_email: Optional[str] = None):
        self.api_key = api_key if api_key is not None else settings.sendgrid_api_key
        self.from_email = from_email or settings.email_from
        self.client = SendGridAPIClient(api_key=self.api_key) if self.api_key else None

    async def _deliver(self, to: str, subject: str, html: str) -> None:
        message = Mail(
            from_email=self.from_email,
            to_emails=to,
            subject=subject,
            html_content=html,
        )
        try:
            response = await asyncio.to_thread(self.client.send, message)
        except Exception as e:
            raise EmailSendError(str(e)) from e
        if response.status_code >= 300:
            raise EmailSendError(f"SendGrid returned {response.status_code}")

    async def send(self, to: str, subject: str, html: str) -> bool:
        if not self.client:
            logger.info("SendGrid not configured, skipping email to %s", to)
            return False
        try:
            await self._deliver(to, subject, html)
        except EmailSendError as e:
            logger.error("Failed to send email to %s: %s", to, e)
            return False
        return True

    async def send_usage_alert(
        self,
        to: str,
        action_type: ActionType,
        threshold: int,
        used: int,
        limit: int,
        overage_rate: Decimal
    ) -> bool:
        if threshold >= 100:
            html = usage_alert_100_template(action_type, used, limit, overage_rate)
        else:
            html = usage_alert_80_template(action_type, used, limit)
        return await self.send(to, usage_alert_subject(action_type, threshold), html)


# Create a singleton instance
notification_service = NotificationService()
