from __future__ import annotations

import logging
from typing import List

from . import config, emailer, monitor
from .db import open_store
from .errors import PersistenceError
from .notifier import DiscordNotifier
from .utils import get_http_session


def setup_logging() -> None:
    level = getattr(logging, config.LOG_LEVEL.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def build_notifiers(session, log: logging.Logger) -> List[monitor.Notify]:
    notifiers: List[monitor.Notify] = [
        DiscordNotifier(config.DISCORD_WEBHOOK_URL, session, log=log.getChild("discord")),
    ]
    if config.EMAIL_ENABLED:
        email_log = log.getChild("email")
        notifiers.append(lambda p: emailer.send_product_event(p, log=email_log))
    else:
        log.info("Email notifications disabled.")
    return notifiers


def main() -> None:
    """Initialise and run the monitoring loop."""
    config.validate()
    setup_logging()
    logger = logging.getLogger(__name__)
    logger.info("Starting...")

    logger.info("Opening database %s", config.SQLITE_DB_PATH)
    try:
        store = open_store(config.SQLITE_DB_PATH)
    except PersistenceError:
        logger.critical("Failed to open database", exc_info=True)
        raise SystemExit(1)

    with store, get_http_session(config.REQUEST_HEADERS) as session:
        mon = monitor.Monitor(
            session,
            store,
            build_notifiers(session, logger),
            log=logging.getLogger("unifi_monitor.monitor"),
        )
        ticker = monitor.Ticker(config.CHECK_INTERVAL_SECONDS, config.RETRY_BACKOFF_SECONDS)
        try:
            monitor.run_forever(mon, ticker)
        except KeyboardInterrupt:
            logger.info("Interrupted, shutting down.")


if __name__ == "__main__":
    main()
