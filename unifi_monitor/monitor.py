"""Polling loop: resolve endpoints, fetch, persist, notify, sleep, repeat."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence

import requests

from . import config, scraper
from .db import ProductStore
from .errors import FetchError, MonitorError, NotificationError, PersistenceError, ResolutionError
from .scraper import Product

logger = logging.getLogger(__name__)

Notify = Callable[[Product], None]


@dataclass
class CycleResult:
    endpoints: List[str] = field(default_factory=list)
    products: List[Product] = field(default_factory=list)
    inserted: List[str] = field(default_factory=list)
    notified: List[str] = field(default_factory=list)
    errors: List[MonitorError] = field(default_factory=list)

    @property
    def resolved(self) -> bool:
        return not any(isinstance(e, ResolutionError) for e in self.errors)

    @property
    def ok(self) -> bool:
        return not self.errors


class Monitor:
    """
    One pass over the tracked products per `run_cycle()` call.

    All collaborators are injected; `run_cycle` never raises a MonitorError,
    it records it on the returned CycleResult instead.
    """

    def __init__(
        self,
        session: requests.Session,
        store: ProductStore,
        notifiers: Sequence[Notify] = (),
        *,
        home_url: str = config.HOME_URL,
        product_paths: Sequence[str] = config.PRODUCT_PATHS,
        data_url_template: str = config.DATA_URL_TEMPLATE,
        build_id_pattern: str = config.BUILD_ID_PATTERN,
        headers: Optional[Dict[str, str]] = None,
        timeout: float = config.REQUEST_TIMEOUT_SECONDS,
        target_status: str = config.TARGET_STATUS,
        collection: str = config.PRODUCTS_COLLECTION,
        export_path: Optional[str] = config.EXPORT_PATH,
        log: Optional[logging.Logger] = None,
    ) -> None:
        self.session = session
        self.store = store
        self.notifiers = list(notifiers)
        self.home_url = home_url
        self.product_paths = list(product_paths)
        self.data_url_template = data_url_template
        self.build_id_pattern = build_id_pattern
        self.headers = headers
        self.timeout = timeout
        self.target_status = target_status
        self.collection = collection
        self.export_path = export_path
        self.log = log or logger

    def resolve(self) -> List[str]:
        return scraper.resolve_endpoints(
            self.session,
            home_url=self.home_url,
            paths=self.product_paths,
            template=self.data_url_template,
            pattern=self.build_id_pattern,
            headers=self.headers,
            timeout=self.timeout,
            log=self.log,
        )

    def fetch(self, url: str) -> Product:
        return scraper.fetch_product(
            self.session, url, headers=self.headers, timeout=self.timeout, log=self.log
        )

    def run_cycle(self) -> CycleResult:
        result = CycleResult()
        try:
            result.endpoints = self.resolve()
        except ResolutionError as e:
            self.log.error("Failed to resolve endpoints: %s", e)
            result.errors.append(e)
            return result

        for url in result.endpoints:
            try:
                product = self.fetch(url)
            except FetchError as e:
                self.log.error("Failed to fetch product %s: %s", url, e)
                result.errors.append(e)
                continue
            result.products.append(product)

            try:
                result.inserted.append(self.store.insert_product(product, self.collection))
            except PersistenceError as e:
                self.log.error("Failed to store product %s: %s", product.id, e)
                result.errors.append(e)

            if product.status == self.target_status:
                self._notify(product, result)
            else:
                self.log.info("%s not in stock (status=%s)", product.title, product.status)

        if result.inserted and self.export_path:
            try:
                self.store.export_collection(self.collection, self.export_path)
            except PersistenceError as e:
                self.log.error("Failed to export %s: %s", self.collection, e)
                result.errors.append(e)

        return result

    def _notify(self, product: Product, result: CycleResult) -> None:
        sent = False
        for notify in self.notifiers:
            try:
                notify(product)
                sent = True
            except NotificationError as e:
                self.log.error("Failed to notify for %s: %s", product.id, e)
                result.errors.append(e)
            except Exception as e:
                self.log.exception("Notifier %r crashed for %s", notify, product.id)
                err = NotificationError(f"Notifier failed for {product.id}: {e!r}")
                err.__cause__ = e
                result.errors.append(err)
        if sent:
            result.notified.append(product.id)


class Ticker:
    """Fixed-interval scheduler. `sleep` is injectable so tests don't wait."""

    def __init__(
        self,
        interval_seconds: float = config.CHECK_INTERVAL_SECONDS,
        backoff_seconds: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.interval_seconds = interval_seconds
        self.backoff_seconds = interval_seconds if backoff_seconds is None else backoff_seconds
        self._sleep = sleep

    def wait(self, *, failed: bool = False) -> float:
        delay = self.backoff_seconds if failed else self.interval_seconds
        self._sleep(delay)
        return delay


def run_forever(
    monitor: Monitor,
    ticker: Ticker,
    *,
    max_cycles: Optional[int] = None,
    log: Optional[logging.Logger] = None,
) -> int:
    """
    Drive `monitor.run_cycle()` on `ticker` until the process is killed.

    `max_cycles` bounds the loop for callers that need it to return; the
    number of cycles run is returned.
    """
    log = log or logger
    log.info("Starting monitor for %d products", len(monitor.product_paths))
    cycles = 0
    while max_cycles is None or cycles < max_cycles:
        failed = False
        try:
            result = monitor.run_cycle()
            failed = bool(result.errors)
            if result.ok and not result.notified:
                log.info("No tracked product in stock; checking again in %ss", ticker.interval_seconds)
            elif result.errors:
                log.warning("Cycle finished with %d error(s)", len(result.errors))
        except Exception:
            log.exception("Unexpected error during monitor cycle")
            failed = True
        cycles += 1
        ticker.wait(failed=failed)
    return cycles


__all__ = ["CycleResult", "Monitor", "Ticker", "run_forever"]
