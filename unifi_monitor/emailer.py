"""Email notifier via SMTP.

Sends product notifications to one or more recipients using SMTP.
Supports STARTTLS (587) or SSL (465). Keep bodies short & link out.
"""

from __future__ import annotations

import logging
import smtplib
import ssl
from email.message import EmailMessage
from typing import Optional

from . import config
from .errors import NotificationError
from .scraper import Product

logger = logging.getLogger(__name__)


def _build_subject(product: Product) -> str:
    return f"{config.EMAIL_SUBJECT_PREFIX} In Stock: {product.title}"


def _build_bodies(product: Product, store_url: str = config.HOME_URL) -> tuple[str, str]:
    """Return (plain_text, html) bodies."""
    title = product.title or "Unknown product"
    lines = [
        f"Price: {product.price_display}",
        f"Status: {product.status}",
        f"Variant: {product.canonical_variant.id}",
    ]
    url = product.page_url(store_url)
    img = product.thumbnail.url or ""

    # --- Plain text body
    plain = (
        f"In Stock: {title}\n\n"
        + (f"{product.short_description}\n\n" if product.short_description else "")
        + "\n".join(lines)
        + f"\n\nLink: {url}\n"
    )

    # --- HTML body (avoid nested f-strings)
    li_html = "".join("<li>{}</li>".format(l) for l in lines)
    img_html = '<p><img src="{}" alt="image" style="max-width:480px;"></p>'.format(img) if img else ""

    html = (
        "<html>"
        "<body>"
        "<h3>In Stock: {title}</h3>"
        "<ul>{lis}</ul>"
        '<p><a href="{url}">Open product page</a></p>'
        "{img}"
        "</body>"
        "</html>"
    ).format(title=title, lis=li_html, url=url, img=img_html)

    return plain, html


def _send(msg: EmailMessage) -> None:
    required = (config.EMAIL_USERNAME, config.EMAIL_PASSWORD, config.EMAIL_TO)
    if not all(required):
        raise NotificationError("Email config incomplete; set EMAIL_USERNAME, EMAIL_PASSWORD, EMAIL_TO")

    host, port = config.EMAIL_SMTP_HOST, int(config.EMAIL_SMTP_PORT)
    try:
        if config.EMAIL_USE_TLS and port == 587:
            with smtplib.SMTP(host, port, timeout=20) as s:
                s.ehlo()
                s.starttls(context=ssl.create_default_context())
                s.login(config.EMAIL_USERNAME, config.EMAIL_PASSWORD)
                s.send_message(msg)
        else:
            with smtplib.SMTP_SSL(host, port, context=ssl.create_default_context(), timeout=20) as s:
                s.login(config.EMAIL_USERNAME, config.EMAIL_PASSWORD)
                s.send_message(msg)
    except (smtplib.SMTPException, OSError) as e:
        raise NotificationError(f"Failed to send email: {e}") from e
    logger.info("Email sent to %s (subject=%s)", ", ".join(config.EMAIL_TO), msg.get("Subject"))


def send_product_event(product: Product, *, log: Optional[logging.Logger] = None) -> None:
    if not config.EMAIL_ENABLED or not config.EMAIL_TO:
        return

    (log or logger).info("Emailing in-stock notice for %s (id=%s)", product.title, product.id)
    plain, html = _build_bodies(product)

    msg = EmailMessage()
    msg["Subject"] = _build_subject(product)
    msg["From"] = config.EMAIL_FROM or (config.EMAIL_USERNAME or "")
    msg["To"] = ", ".join(config.EMAIL_TO)
    msg.set_content(plain)
    msg.add_alternative(html, subtype="html")
    _send(msg)


__all__ = ["send_product_event"]
