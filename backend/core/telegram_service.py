"""
Telegram Bot API client used to deliver PDF reports to a tenant chat.
"""
import os
import logging
from typing import Optional, Dict, Any

import requests
from django.conf import settings

from .exceptions import ApiError

logger = logging.getLogger(__name__)

# Telegram API base URL (configure in settings or environment)
TELEGRAM_API_BASE = getattr(
    settings,
    'TELEGRAM_API_BASE',
    os.getenv('TELEGRAM_API_BASE', 'https://api.telegram.org')
).rstrip('/')

TELEGRAM_TIMEOUT_SECONDS = getattr(
    settings,
    'TELEGRAM_TIMEOUT_SECONDS',
    int(os.getenv('TELEGRAM_TIMEOUT_SECONDS', '20'))
)


def send_document(bot_token: str, chat_id: str, file_name: str, content: bytes,
                  caption: Optional[str] = None) -> Dict[str, Any]:
    """
    Upload a document to a Telegram chat via ``sendDocument``.

    Args:
        bot_token: Bot token of the tenant integration
        chat_id: Target chat id
        file_name: Name shown in the chat
        content: Raw file bytes
        caption: Optional caption

    Returns:
        The ``result`` object of the Telegram response

    Raises:
        ApiError 502 TELEGRAM_SEND_FAILED when the request fails or Telegram rejects it
    """
    url = f"{TELEGRAM_API_BASE}/bot{bot_token}/sendDocument"
    data = {'chat_id': chat_id}
    if caption:
        data['caption'] = caption[:1024]

    try:
        response = requests.post(
            url,
            data=data,
            files={'document': (file_name, content, 'application/pdf')},
            timeout=TELEGRAM_TIMEOUT_SECONDS,
        )
    except requests.exceptions.RequestException as e:
        logger.error(f"Telegram sendDocument request failed: {type(e).__name__}")
        raise ApiError(502, 'TELEGRAM_SEND_FAILED', 'Failed to reach Telegram.') from e

    try:
        payload = response.json()
    except ValueError:
        payload = {}

    if response.status_code != 200 or not payload.get('ok'):
        description = payload.get('description') or response.text[:200]
        logger.error(f"Telegram sendDocument rejected: HTTP {response.status_code} {description}")
        raise ApiError(
            502, 'TELEGRAM_SEND_FAILED',
            f"Telegram rejected the document: {description}",
        )

    logger.info(f"Sent {file_name} to Telegram chat {chat_id}")
    return payload.get('result') or {}


def get_export_target(tenant, export_flag):
    """
    Telegram settings of the tenant when exports of this kind should be sent.

    Returns None when the integration is disabled, incomplete or the
    ``export_flag`` (``send_on_checklist_export`` / ``send_on_transaction_export``)
    is switched off.
    """
    from backend.tenants.models import TenantTelegramSetting

    setting = TenantTelegramSetting.objects.filter(tenant=tenant).first()
    if setting is None or not setting.is_configured or not getattr(setting, export_flag, False):
        logger.info(f"Telegram export skipped for tenant {tenant.code} ({export_flag})")
        return None
    return setting
