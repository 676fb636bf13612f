"""
Telegram Bot API transport.

Thin wrapper over ``getMe`` and ``sendMessage``.  Rate limiting is surfaced
to the caller as :class:`RateLimited` carrying the server's ``retry_after``
hint; the retry policy itself lives in :func:`market_alert_bot.alerts.dispatch`.
"""

from __future__ import annotations

import re
from typing import Any, Dict, Optional

import requests  # runtime dep

from .logging_utils import get_logger
from .models import AlertMessage

log = get_logger("telegram_transport")

_RETRY_AFTER_RE = re.compile(r"retry after (\d+)", re.IGNORECASE)


class TransportError(Exception):
    """Base class for transport failures."""


class CredentialError(TransportError):
    """Token rejected, or token / channel missing.  Fatal at startup."""


class RateLimited(TransportError):
    def __init__(self, retry_after: Optional[float], description: str = ""):
        super().__init__(description or f"rate limited (retry_after={retry_after})")
        self.retry_after = retry_after


class DeliveryError(TransportError):
    def __init__(self, description: str, status_code: Optional[int] = None):
        super().__init__(description)
        self.status_code = status_code


def _mask_token(url: str, token: str) -> str:
    return url.replace(token, "***") if token else url


def _retry_after_from(resp: Any, body: Dict[str, Any]) -> Optional[float]:
    """Server wait hint: body.parameters.retry_after, Retry-After header, or text."""
    params = body.get("parameters") or {}
    val = params.get("retry_after")
    if val is None:
        val = (getattr(resp, "headers", None) or {}).get("Retry-After")
    if val is None:
        m = _RETRY_AFTER_RE.search(str(body.get("description") or ""))
        val = m.group(1) if m else None
    try:
        return float(val) if val is not None else None
    except (TypeError, ValueError):
        return None


class TelegramTransport:
    def __init__(
        self,
        token: str,
        base_url: str = "https://api.telegram.org",
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()

    def _url(self, method: str) -> str:
        return f"{self.base_url}/bot{self.token}/{method}"

    def _call(self, method: str, payload: Optional[dict] = None):
        url = self._url(method)
        try:
            resp = self._session.post(url, json=payload or {}, timeout=self.timeout)
        except requests.RequestException as e:
            raise DeliveryError(
                f"{method} request failed: {e.__class__.__name__}: "
                f"{_mask_token(str(e), self.token)}"
            ) from e
        try:
            body = resp.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        return resp, body

    def verify(self) -> Dict[str, Any]:
        """Call ``getMe``.  Returns the bot profile or raises CredentialError."""
        if not self.token:
            raise CredentialError("TELEGRAM_TOKEN is not set")
        try:
            resp, body = self._call("getMe")
        except DeliveryError as e:
            raise CredentialError(str(e)) from e
        status = getattr(resp, "status_code", None)
        if status != 200 or not body.get("ok"):
            desc = body.get("description") or f"http_status={status}"
            raise CredentialError(f"getMe failed: {desc}")
        return body.get("result") or {}

    def send_message(self, chat_id: str, message: AlertMessage) -> Dict[str, Any]:
        payload = {
            "chat_id": chat_id,
            "text": message.text,
            "parse_mode": message.parse_mode,
            "disable_web_page_preview": message.disable_web_page_preview,
        }
        resp, body = self._call("sendMessage", payload)
        status = getattr(resp, "status_code", None)
        if status is not None and 200 <= status < 300 and body.get("ok", True):
            return body.get("result") or {}

        desc = str(body.get("description") or getattr(resp, "text", "") or "")[:500]
        if status == 429 or body.get("error_code") == 429:
            raise RateLimited(_retry_after_from(resp, body), desc)
        raise DeliveryError(desc or f"http_status={status}", status_code=status)
