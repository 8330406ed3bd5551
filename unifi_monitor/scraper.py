from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import requests
from bs4 import BeautifulSoup

from .config import (
    BUILD_ID_PATTERN,
    DATA_URL_TEMPLATE,
    HOME_URL,
    PRODUCT_PATHS,
    REQUEST_TIMEOUT_SECONDS,
)
from .errors import DecodeError, FetchError, ResolutionError
from .utils import HTTPError, retryable_request

logger = logging.getLogger(__name__)


@dataclass
class DisplayPrice:
    amount: int        # minor currency units (cents)
    currency: str


@dataclass
class Variant:
    id: str
    display_price: DisplayPrice


@dataclass
class Thumbnail:
    url: str = ""


@dataclass
class Product:
    id: str
    title: str
    status: str        # e.g. "Available", "SoldOut", "ComingSoon"
    short_description: str = ""
    collection_slug: str = ""
    slug: str = ""
    thumbnail: Thumbnail = field(default_factory=Thumbnail)
    variants: List[Variant] = field(default_factory=list)

    @property
    def canonical_variant(self) -> Variant:
        if not self.variants:
            raise DecodeError(f"Product {self.id} has no variants")
        return self.variants[0]

    @property
    def price_display(self) -> str:
        return format_price(self.canonical_variant.display_price.amount)

    def page_url(self, store_url: str = HOME_URL) -> str:
        return (
            f"{store_url.rstrip('/')}/category/{self.collection_slug}"
            f"/products/{self.slug}"
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialise back to the store's JSON shape (camelCase keys)."""
        return {
            "id": self.id,
            "title": self.title,
            "status": self.status,
            "shortDescription": self.short_description,
            "collectionSlug": self.collection_slug,
            "slug": self.slug,
            "thumbnail": {"url": self.thumbnail.url},
            "variants": [
                {
                    "id": v.id,
                    "displayPrice": {
                        "amount": v.display_price.amount,
                        "currency": v.display_price.currency,
                    },
                }
                for v in self.variants
            ],
        }


def format_price(amount: int) -> str:
    """Format minor units as dollars, e.g. 49900 -> "$499.00"."""
    return f"${amount // 100}.{amount % 100:02d}"


@retryable_request
def _get(session: requests.Session, url: str, **kwargs: Any) -> requests.Response:
    """Thin wrapper around session.get with retry policy from utils.retryable_request."""
    return session.get(url, **kwargs)


# ---------------------------
# Endpoint resolution
# ---------------------------

def extract_build_id(html: str, pattern: str = BUILD_ID_PATTERN) -> Optional[str]:
    """
    Pull the Next.js build id out of the homepage.

    The asset-path pattern is tried first; the inline __NEXT_DATA__ blob is
    the fallback. Returns None when neither carries a build id.
    """
    m = re.search(pattern, html or "")
    if m:
        return m.group(1)
    return _build_id_from_next_data(html)


def _build_id_from_next_data(html: str) -> Optional[str]:
    if not html or "__NEXT_DATA__" not in html:
        return None
    soup = BeautifulSoup(html, "html.parser")
    tag = soup.find("script", id="__NEXT_DATA__")
    if tag is None:
        return None
    try:
        data = json.loads(tag.string or "")
    except ValueError:
        logger.debug("__NEXT_DATA__ present but not valid JSON")
        return None
    build_id = data.get("buildId") if isinstance(data, dict) else None
    if isinstance(build_id, str) and re.fullmatch(r"[A-Za-z0-9_-]+", build_id):
        return build_id
    return None


def build_endpoint_urls(
    build_id: str,
    paths: Sequence[str] = PRODUCT_PATHS,
    template: str = DATA_URL_TEMPLATE,
) -> List[str]:
    return [template.format(build_id=build_id, path=p.strip("/")) for p in paths]


def resolve_endpoints(
    session: requests.Session,
    *,
    home_url: str = HOME_URL,
    paths: Sequence[str] = PRODUCT_PATHS,
    template: str = DATA_URL_TEMPLATE,
    pattern: str = BUILD_ID_PATTERN,
    headers: Optional[Dict[str, str]] = None,
    timeout: float = REQUEST_TIMEOUT_SECONDS,
    log: Optional[logging.Logger] = None,
) -> List[str]:
    """
    Fetch the homepage, scrape the build id and return one data URL per
    tracked product, in the order of `paths`.

    Raises ResolutionError if the page can't be fetched or carries no build id.
    """
    log = log or logger
    log.info("Fetching build id from %s", home_url)
    try:
        resp = _get(session, home_url, headers=headers, timeout=timeout)
    except (requests.RequestException, HTTPError) as e:
        raise ResolutionError(f"Failed to fetch home page {home_url}: {e}") from e

    build_id = extract_build_id(resp.text, pattern)
    if not build_id:
        raise ResolutionError(f"Build id not found in {home_url}")

    log.info("Extracted build id: %s", build_id)
    return build_endpoint_urls(build_id, paths, template)


# ---------------------------
# Product decoding
# ---------------------------

def _require(obj: Any, key: str, kind: type, where: str) -> Any:
    if not isinstance(obj, dict):
        raise DecodeError(f"{where}: expected object, got {type(obj).__name__}")
    if key not in obj:
        raise DecodeError(f"{where}: missing '{key}'")
    val = obj[key]
    # bool is an int subclass; an amount of True is not a price
    if not isinstance(val, kind) or (kind is int and isinstance(val, bool)):
        raise DecodeError(f"{where}.{key}: expected {kind.__name__}, got {type(val).__name__}")
    return val


def _optional_str(obj: dict, key: str) -> str:
    val = obj.get(key)
    return val if isinstance(val, str) else ""


def _decode_variant(raw: Any, idx: int) -> Variant:
    where = f"variants[{idx}]"
    vid = _require(raw, "id", str, where)
    price = _require(raw, "displayPrice", dict, where)
    return Variant(
        id=vid,
        display_price=DisplayPrice(
            amount=_require(price, "amount", int, f"{where}.displayPrice"),
            currency=_require(price, "currency", str, f"{where}.displayPrice"),
        ),
    )


def decode_product(raw: Any) -> Product:
    """Build a Product from the `product` object of a data response."""
    pid = _require(raw, "id", str, "product")
    variants_raw = _require(raw, "variants", list, "product")
    if not variants_raw:
        raise DecodeError(f"product {pid}: variants is empty")

    thumb = raw.get("thumbnail")
    thumb_url = _optional_str(thumb, "url") if isinstance(thumb, dict) else ""

    return Product(
        id=pid,
        title=_require(raw, "title", str, "product"),
        status=_require(raw, "status", str, "product"),
        short_description=_optional_str(raw, "shortDescription"),
        collection_slug=_optional_str(raw, "collectionSlug"),
        slug=_optional_str(raw, "slug"),
        thumbnail=Thumbnail(url=thumb_url),
        variants=[_decode_variant(v, i) for i, v in enumerate(variants_raw)],
    )


def decode_envelope(data: Any) -> Product:
    """
    Unwrap `{pageProps: {product}}`. The `{props: {pageProps}}` form used by
    the inline __NEXT_DATA__ blob is accepted too.
    """
    if isinstance(data, dict) and "pageProps" not in data and isinstance(data.get("props"), dict):
        data = data["props"]
    page_props = _require(data, "pageProps", dict, "response")
    product = _require(page_props, "product", dict, "pageProps")
    return decode_product(product)


def fetch_product(
    session: requests.Session,
    url: str,
    *,
    headers: Optional[Dict[str, str]] = None,
    timeout: float = REQUEST_TIMEOUT_SECONDS,
    log: Optional[logging.Logger] = None,
) -> Product:
    """
    GET one data endpoint and decode it.

    Raises FetchError on network/HTTP/JSON failures and DecodeError when the
    JSON does not look like a product response.
    """
    log = log or logger
    log.debug("Fetching product data: %s", url)
    try:
        resp = _get(session, url, headers=headers, timeout=timeout)
    except (requests.RequestException, HTTPError) as e:
        raise FetchError(f"Request failed: {e}", url=url) from e

    try:
        data = resp.json()
    except ValueError as e:
        raise FetchError(f"Response is not JSON: {e}", url=url) from e

    try:
        product = decode_envelope(data)
    except DecodeError as e:
        e.url = url
        raise

    log.info("Product: %s (status=%s)", product.title, product.status)
    return product


__all__ = [
    "DisplayPrice",
    "Variant",
    "Thumbnail",
    "Product",
    "format_price",
    "extract_build_id",
    "build_endpoint_urls",
    "resolve_endpoints",
    "decode_product",
    "decode_envelope",
    "fetch_product",
]
