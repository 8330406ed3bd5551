"""Discord webhook notifier.

Sends an embed to a Discord channel when a tracked product is in stock.
The payload is built as typed dataclasses and serialised with
`WebhookPayload.to_dict()`; `from_dict()` reads the same shape back.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import requests

from .config import (
    DISCORD_WEBHOOK_URL,
    EMBED_COLOR,
    EMBED_FOOTER_ICON_URL,
    EMBED_FOOTER_TEXT,
    HOME_URL,
    REQUEST_TIMEOUT_SECONDS,
)
from .errors import NotificationError
from .scraper import Product
from .utils import HTTPError, get_http_session, retryable_request

logger = logging.getLogger(__name__)


@dataclass
class EmbedField:
    name: str
    value: str
    inline: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "value": self.value, "inline": self.inline}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "EmbedField":
        return cls(name=d["name"], value=d["value"], inline=bool(d.get("inline", False)))


@dataclass
class Embed:
    title: str
    description: str = ""
    url: Optional[str] = None
    color: Optional[int] = None
    fields: List[EmbedField] = field(default_factory=list)
    thumbnail_url: Optional[str] = None
    footer_text: Optional[str] = None
    footer_icon_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"title": self.title, "description": self.description}
        if self.url:
            d["url"] = self.url
        if self.color is not None:
            d["color"] = self.color
        if self.fields:
            d["fields"] = [f.to_dict() for f in self.fields]
        if self.thumbnail_url:
            d["thumbnail"] = {"url": self.thumbnail_url}
        if self.footer_text:
            footer = {"text": self.footer_text}
            if self.footer_icon_url:
                footer["icon_url"] = self.footer_icon_url
            d["footer"] = footer
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Embed":
        footer = d.get("footer") or {}
        return cls(
            title=d["title"],
            description=d.get("description", ""),
            url=d.get("url"),
            color=d.get("color"),
            fields=[EmbedField.from_dict(f) for f in d.get("fields", [])],
            thumbnail_url=(d.get("thumbnail") or {}).get("url"),
            footer_text=footer.get("text"),
            footer_icon_url=footer.get("icon_url"),
        )


@dataclass
class WebhookPayload:
    embeds: List[Embed]
    content: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"embeds": [e.to_dict() for e in self.embeds]}
        if self.content:
            d["content"] = self.content
        return d

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "WebhookPayload":
        return cls(
            embeds=[Embed.from_dict(e) for e in d.get("embeds", [])],
            content=d.get("content"),
        )


def build_payload(product: Product, store_url: str = HOME_URL) -> WebhookPayload:
    variant = product.canonical_variant
    embed = Embed(
        title=product.title,
        description=f"{product.short_description}\n",
        url=product.page_url(store_url),
        color=EMBED_COLOR,
        fields=[
            EmbedField("Price", product.price_display),
            EmbedField("Status", product.status),
            EmbedField("Variant", variant.id),
        ],
        thumbnail_url=product.thumbnail.url or None,
        footer_text=EMBED_FOOTER_TEXT,
        footer_icon_url=EMBED_FOOTER_ICON_URL,
    )
    return WebhookPayload(embeds=[embed])


@retryable_request(check_status=False)
def _post(session: requests.Session, url: str, **kwargs) -> requests.Response:
    return session.post(url, **kwargs)


class DiscordNotifier:
    """Callable notifier bound to one webhook URL and session."""

    def __init__(
        self,
        webhook_url: Optional[str] = None,
        session: Optional[requests.Session] = None,
        *,
        store_url: str = HOME_URL,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        log: Optional[logging.Logger] = None,
    ) -> None:
        self.webhook_url = webhook_url if webhook_url is not None else DISCORD_WEBHOOK_URL
        self.session = session
        self.store_url = store_url
        self.timeout = timeout
        self.log = log or logger

    def __call__(self, product: Product) -> None:
        send_product_event(
            product,
            webhook_url=self.webhook_url,
            session=self.session,
            store_url=self.store_url,
            timeout=self.timeout,
            log=self.log,
        )


def send_product_event(
    product: Product,
    webhook_url: Optional[str] = None,
    session: Optional[requests.Session] = None,
    *,
    store_url: str = HOME_URL,
    timeout: float = REQUEST_TIMEOUT_SECONDS,
    log: Optional[logging.Logger] = None,
) -> None:
    """
    Post the in-stock embed for `product`.

    Fire-and-forget: the response body is ignored and a non-2xx status is
    only logged. Raises NotificationError when the webhook is unset or the
    request itself fails.
    """
    log = log or logger
    if webhook_url is None:
        webhook_url = DISCORD_WEBHOOK_URL
    if not webhook_url:
        raise NotificationError("Discord webhook URL is not configured.")

    payload = build_payload(product, store_url)

    close_session = False
    if session is None:
        session = get_http_session()
        close_session = True

    try:
        log.info("Product in stock! Sending webhook for %s (id=%s)", product.title, product.id)
        resp = _post(session, webhook_url, json=payload.to_dict(), timeout=timeout)
        if resp.status_code >= 300:
            log.warning("Webhook returned HTTP %s for %s", resp.status_code, product.id)
        else:
            log.info("Webhook sent")
    except (requests.RequestException, HTTPError) as e:
        raise NotificationError(f"Failed to send webhook for {product.id}: {e}") from e
    finally:
        if close_session:
            session.close()


__all__ = [
    "EmbedField",
    "Embed",
    "WebhookPayload",
    "build_payload",
    "DiscordNotifier",
    "send_product_event",
]
