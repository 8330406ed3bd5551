"""
UniFi store monitor package.

This package contains modules for resolving the UniFi web store's data
endpoints, fetching tracked products, persisting every observation,
notifying Discord (and optionally email) and driving the polling loop.
See README.md for details.
"""

__all__ = [
    "config",
    "db",
    "emailer",
    "errors",
    "monitor",
    "notifier",
    "scraper",
    "main",
    "utils",
]
