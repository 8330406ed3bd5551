import json
import unittest

import requests

from unifi_monitor.errors import DecodeError, FetchError, ResolutionError
from unifi_monitor.scraper import (
    DisplayPrice,
    Product,
    Thumbnail,
    Variant,
    build_endpoint_urls,
    decode_envelope,
    decode_product,
    extract_build_id,
    fetch_product,
    format_price,
    resolve_endpoints,
)

from tests.fakes import (
    BUILD_ID,
    HOME_HTML,
    HOME_URL,
    PATHS,
    TEMPLATE,
    FakeSession,
    endpoint,
    envelope,
    make_response,
    product_json,
)


class ExtractBuildIdTest(unittest.TestCase):
    def test_extracts_identifier_from_asset_path(self) -> None:
        self.assertEqual(extract_build_id(HOME_HTML), BUILD_ID)

    def test_returns_none_without_pattern(self) -> None:
        html = '<script src="https://assets.ecomm.ui.com/_next/static/chunks/main.js"></script>'
        self.assertIsNone(extract_build_id(html))
        self.assertIsNone(extract_build_id(""))

    def test_falls_back_to_next_data_blob(self) -> None:
        blob = json.dumps({"buildId": "fromNextData42", "page": "/[locale]"})
        html = f'<html><script id="__NEXT_DATA__" type="application/json">{blob}</script></html>'
        self.assertEqual(extract_build_id(html), "fromNextData42")

    def test_ignores_malformed_next_data(self) -> None:
        html = '<script id="__NEXT_DATA__" type="application/json">{not json</script>'
        self.assertIsNone(extract_build_id(html))


class BuildEndpointUrlsTest(unittest.TestCase):
    def test_interpolates_identifier_in_order(self) -> None:
        urls = build_endpoint_urls("abc123", PATHS, TEMPLATE)
        self.assertEqual(
            urls,
            [
                "https://store.ui.com/_next/data/abc123/us/en/category/all-power-tech/"
                "collections/power-tech/products/usp-pdu-pro.json",
                "https://store.ui.com/_next/data/abc123/us/en/category/network-storage/"
                "collections/unifi-new-integrations-network-storage/products/unas-pro.json",
            ],
        )


class ResolveEndpointsTest(unittest.TestCase):
    def test_resolves_all_tracked_products(self) -> None:
        session = FakeSession({HOME_URL: make_response(HOME_URL, HOME_HTML)})
        urls = resolve_endpoints(session, home_url=HOME_URL, paths=PATHS, template=TEMPLATE)
        self.assertEqual(urls, [endpoint(p) for p in PATHS])
        self.assertEqual(session.urls(), [HOME_URL])

    def test_missing_pattern_raises(self) -> None:
        session = FakeSession({HOME_URL: make_response(HOME_URL, "<html>maintenance</html>")})
        with self.assertRaises(ResolutionError):
            resolve_endpoints(session, home_url=HOME_URL, paths=PATHS, template=TEMPLATE)

    def test_network_failure_raises(self) -> None:
        session = FakeSession({HOME_URL: requests.ConnectionError("boom")})
        with self.assertRaises(ResolutionError):
            resolve_endpoints(session, home_url=HOME_URL, paths=PATHS, template=TEMPLATE)

    def test_http_error_raises(self) -> None:
        session = FakeSession({HOME_URL: make_response(HOME_URL, HOME_HTML, status=403)})
        with self.assertRaises(ResolutionError):
            resolve_endpoints(session, home_url=HOME_URL, paths=PATHS, template=TEMPLATE)


class DecodeProductTest(unittest.TestCase):
    def test_decodes_all_fields(self) -> None:
        p = decode_product(product_json(status="Available", amount=12345))
        self.assertEqual(p.id, "c5ddda0a-b78f-4ec3-bcd4-f5078313c480")
        self.assertEqual(p.status, "Available")
        self.assertEqual(p.collection_slug, "power-tech")
        self.assertEqual(p.slug, "usp-pdu-pro")
        self.assertEqual(p.thumbnail.url, "https://images.svc.ui.com/usp-pdu-pro.png")
        self.assertEqual(p.variants[0].display_price, DisplayPrice(12345, "USD"))

    def test_round_trip(self) -> None:
        samples = [
            Product(
                id="p1",
                title="UNAS Pro",
                status="Available",
                short_description="7-bay NAS",
                collection_slug="unifi-new-integrations-network-storage",
                slug="unas-pro",
                thumbnail=Thumbnail("https://images.svc.ui.com/unas.png"),
                variants=[
                    Variant("v1", DisplayPrice(49900, "USD")),
                    Variant("v2", DisplayPrice(5, "CAD")),
                ],
            ),
            Product(id="p2", title="", status="ComingSoon",
                    variants=[Variant("v", DisplayPrice(0, "EUR"))]),
        ]
        for p in samples:
            self.assertEqual(decode_product(p.to_dict()), p)
            self.assertEqual(decode_product(json.loads(json.dumps(p.to_dict()))), p)

    def test_optional_fields_default_to_empty(self) -> None:
        raw = product_json()
        for key in ("shortDescription", "collectionSlug", "slug", "thumbnail"):
            del raw[key]
        p = decode_product(raw)
        self.assertEqual((p.short_description, p.slug, p.thumbnail.url), ("", "", ""))

    def test_missing_variants_raises(self) -> None:
        raw = product_json()
        del raw["variants"]
        with self.assertRaises(DecodeError):
            decode_product(raw)

    def test_empty_variants_raises(self) -> None:
        raw = product_json()
        raw["variants"] = []
        with self.assertRaises(DecodeError):
            decode_product(raw)

    def test_bad_price_types_raise(self) -> None:
        for amount in ("499.00", 499.0, True, None):
            raw = product_json()
            raw["variants"][0]["displayPrice"]["amount"] = amount
            with self.assertRaises(DecodeError, msg=repr(amount)):
                decode_product(raw)

    def test_envelope_shapes(self) -> None:
        raw = product_json()
        self.assertEqual(decode_envelope(envelope(raw)).id, raw["id"])
        self.assertEqual(decode_envelope({"props": envelope(raw)}).id, raw["id"])
        for bad in ({}, {"pageProps": {}}, {"pageProps": {"product": None}}, [], "x"):
            with self.assertRaises(DecodeError, msg=repr(bad)):
                decode_envelope(bad)

    def test_empty_product_has_no_canonical_variant(self) -> None:
        with self.assertRaises(DecodeError):
            Product(id="x", title="x", status="x").price_display


class FormatPriceTest(unittest.TestCase):
    def test_formats_minor_units(self) -> None:
        self.assertEqual(format_price(49900), "$499.00")
        self.assertEqual(format_price(12345), "$123.45")
        self.assertEqual(format_price(1905), "$19.05")
        self.assertEqual(format_price(7), "$0.07")


class FetchProductTest(unittest.TestCase):
    url = endpoint(PATHS[0])

    def test_fetches_and_decodes(self) -> None:
        session = FakeSession({self.url: make_response(self.url, envelope(product_json()))})
        p = fetch_product(session, self.url, headers={"accept": "*/*"})
        self.assertEqual(p.title, "Power Distribution Pro")
        self.assertEqual(session.calls[0][2]["headers"], {"accept": "*/*"})

    def test_non_2xx_is_fetch_error(self) -> None:
        session = FakeSession({self.url: make_response(self.url, "not found", status=404)})
        with self.assertRaises(FetchError) as ctx:
            fetch_product(session, self.url)
        self.assertNotIsInstance(ctx.exception, DecodeError)
        self.assertEqual(ctx.exception.url, self.url)

    def test_non_json_is_fetch_error(self) -> None:
        session = FakeSession({self.url: make_response(self.url, "<html></html>")})
        with self.assertRaises(FetchError) as ctx:
            fetch_product(session, self.url)
        self.assertNotIsInstance(ctx.exception, DecodeError)

    def test_wrong_shape_is_decode_error(self) -> None:
        session = FakeSession({self.url: make_response(self.url, {"pageProps": {"notFound": True}})})
        with self.assertRaises(DecodeError) as ctx:
            fetch_product(session, self.url)
        self.assertEqual(ctx.exception.url, self.url)

    def test_timeout_is_fetch_error(self) -> None:
        session = FakeSession({self.url: requests.Timeout("slow")})
        with self.assertRaises(FetchError):
            fetch_product(session, self.url)


if __name__ == "__main__":
    unittest.main()
