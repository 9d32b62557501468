from __future__ import annotations

import html
import logging
from datetime import date
from functools import lru_cache

import httpx

from hirelink.core.config import get_settings

logger = logging.getLogger(__name__)

_DECLINE_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8" />
  <title>Application Update</title>
</head>
<body style="margin:0; padding:0; background:#f4f4f4; font-family:Arial, sans-serif;">
  <table width="100%" cellpadding="0" cellspacing="0" style="background:#f4f4f4; padding:20px 0;">
    <tr>
      <td align="center">
        <table width="600" cellpadding="0" cellspacing="0" style="background:#ffffff; border-radius:10px;">
          <tr>
            <td style="background:#dc3545; padding:30px 20px; text-align:center;">
              <h1 style="margin:0; color:#ffffff; font-size:28px;">Application Update</h1>
            </td>
          </tr>
          <tr>
            <td style="padding:30px; color:#333333; font-size:16px; line-height:1.6;">
              <p>Hi <strong>{name}</strong>,</p>
              <p>Your job offer for the <strong>{position}</strong> position at <strong>{company}</strong>
                 has been declined.</p>
              <div style="border-left:4px solid #dc3545; padding-left:15px; margin:25px 0;">
                <p style="margin:0; font-weight:bold;">Details:</p>
                <p style="margin:4px 0;">Position: <strong>{position}</strong></p>
                <p style="margin:4px 0;">Company: <strong>{company}</strong></p>
                <p style="margin:4px 0;">Date: <strong>{date}</strong></p>
                <p style="margin:4px 0;">Reason: <strong>{reason}</strong></p>
              </div>
              <div style="text-align:center; margin-top:35px;">
                <a href="{messages_url}"
                   style="background:#dc3545; color:#ffffff; padding:15px 35px; font-size:18px;
                          text-decoration:none; border-radius:8px; display:inline-block;">
                  View Messages
                </a>
              </div>
            </td>
          </tr>
        </table>
      </td>
    </tr>
  </table>
</body>
</html>
"""


def render_decline_email(
    *,
    name: str,
    position: str,
    company: str,
    reason: str,
    messages_url: str,
    sent_on: date,
) -> str:
    return _DECLINE_TEMPLATE.format(
        name=html.escape(name),
        position=html.escape(position),
        company=html.escape(company),
        reason=html.escape(reason),
        date=sent_on.strftime("%B %d, %Y"),
        messages_url=html.escape(messages_url, quote=True),
    )


class Mailer:
    """Transactional mail over the Brevo HTTP API. Never raises on delivery failure."""

    def __init__(
        self,
        api_url: str,
        api_key: str | None,
        sender: str | None,
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.api_url = api_url
        self.api_key = api_key
        self.sender = sender
        self.timeout_seconds = timeout_seconds
        self._client = client

    @property
    def enabled(self) -> bool:
        return bool(self.api_key and self.sender)

    async def send(self, *, to: str, subject: str, html_content: str, to_name: str | None = None) -> bool:
        if not self.enabled:
            logger.info("mail delivery disabled; skipping subject=%s", subject)
            return False

        recipient: dict[str, str] = {"email": to}
        if to_name:
            recipient["name"] = to_name
        body = {
            "sender": {"email": self.sender},
            "to": [recipient],
            "subject": subject,
            "htmlContent": html_content,
        }
        headers = {"api-key": self.api_key or "", "accept": "application/json"}

        try:
            if self._client is not None:
                response = await self._client.post(self.api_url, json=body, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                    response = await client.post(self.api_url, json=body, headers=headers)
            response.raise_for_status()
        except httpx.HTTPError:
            logger.warning("mail delivery failed subject=%s", subject, exc_info=True)
            return False

        logger.info("mail delivered subject=%s status=%s", subject, response.status_code)
        return True


@lru_cache
def get_mailer() -> Mailer:
    settings = get_settings()
    return Mailer(
        api_url=settings.mail_api_url,
        api_key=settings.mail_api_key,
        sender=settings.mail_sender,
        timeout_seconds=settings.mail_timeout_seconds,
    )
