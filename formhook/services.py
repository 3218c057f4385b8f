import logging

import requests

from .constants import DEBUG_MODE, DISCORD_TIMEOUT_SECONDS, DISCORD_WEBHOOK_PREFIX

logger = logging.getLogger(__name__)


class DiscordDeliveryError(Exception):
    pass


def is_valid_webhook_url(url) -> bool:
    return bool(url) and str(url).startswith(DISCORD_WEBHOOK_PREFIX)


def _error_detail(resp) -> str:
    try:
        data = resp.json()
        if isinstance(data, dict) and data.get('message'):
            return str(data['message'])
    except ValueError:
        pass
    return resp.text or f"HTTP {resp.status_code}"


def send_discord_payload(webhook_url, payload):
    if not is_valid_webhook_url(webhook_url):
        raise DiscordDeliveryError("Invalid Discord webhook URL")

    try:
        resp = requests.post(webhook_url, json=payload, timeout=DISCORD_TIMEOUT_SECONDS)
    except requests.RequestException as exc:
        logger.error(f"Falha de rede ao enviar para o Discord: {exc}")
        raise DiscordDeliveryError(str(exc)) from exc

    if DEBUG_MODE:
        print(f"[DEBUG] Discord response: {resp.status_code}")
        if resp.status_code != 204:
            print(f"[DEBUG] Response content: {resp.text}")

    if not 200 <= resp.status_code < 300:
        detail = _error_detail(resp)
        logger.error(f"Discord recusou o payload ({resp.status_code}): {detail}")
        raise DiscordDeliveryError(f"Discord API error: {detail}")
    return resp
