import unittest
from unittest import mock

from unifi_monitor import config, main
from unifi_monitor.errors import PersistenceError


class ValidateTest(unittest.TestCase):
    def test_requires_webhook(self) -> None:
        with mock.patch.object(config, "DISCORD_WEBHOOK_URL", None):
            with self.assertRaises(RuntimeError):
                config.validate()

    def test_template_placeholders_checked(self) -> None:
        with mock.patch.object(config, "DISCORD_WEBHOOK_URL", "https://discord.test/hook"), \
                mock.patch.object(config, "DATA_URL_TEMPLATE", "https://store.ui.com/{path}.json"):
            with self.assertRaises(RuntimeError):
                config.validate()

    def test_build_id_pattern_needs_capture_group(self) -> None:
        with mock.patch.object(config, "DISCORD_WEBHOOK_URL", "https://discord.test/hook"):
            for pattern in (r"_next/static/[a-z0-9]+/_buildManifest", r"_next/static/(["):
                with mock.patch.object(config, "BUILD_ID_PATTERN", pattern):
                    with self.assertRaises(RuntimeError, msg=pattern):
                        config.validate()
            config.validate()

    def test_parsers(self) -> None:
        self.assertEqual(config._parse_int("0x0000ff", 1), 255)
        self.assertEqual(config._parse_int("nope", 7), 7)
        self.assertEqual(config._parse_float(None, 2.5), 2.5)
        self.assertTrue(config._parse_bool("Yes"))
        self.assertFalse(config._parse_bool(None))


class MainTest(unittest.TestCase):
    @mock.patch.object(main, "setup_logging")
    @mock.patch.object(config, "DISCORD_WEBHOOK_URL", "https://discord.test/hook")
    def test_store_open_failure_exits(self, _setup) -> None:
        with mock.patch.object(main, "open_store", side_effect=PersistenceError("locked")), \
                mock.patch.object(main.monitor, "run_forever") as run:
            with self.assertRaises(SystemExit) as ctx:
                main.main()
        self.assertEqual(ctx.exception.code, 1)
        run.assert_not_called()

    @mock.patch.object(main, "setup_logging")
    @mock.patch.object(config, "DISCORD_WEBHOOK_URL", "https://discord.test/hook")
    @mock.patch.object(config, "EMAIL_ENABLED", False)
    def test_wires_monitor_and_closes_resources(self, _setup) -> None:
        store = mock.MagicMock()
        store.__enter__.return_value = store
        with mock.patch.object(main, "open_store", return_value=store), \
                mock.patch.object(main.monitor, "run_forever", side_effect=KeyboardInterrupt) as run:
            main.main()
        mon, ticker = run.call_args[0]
        self.assertIs(mon.store, store)
        self.assertEqual(len(mon.notifiers), 1)
        self.assertEqual(ticker.interval_seconds, config.CHECK_INTERVAL_SECONDS)
        store.__exit__.assert_called_once()


if __name__ == "__main__":
    unittest.main()
