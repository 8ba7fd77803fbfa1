"""IMEI blacklist registries.

The registry is an external collaborator. ``LocalBlacklist`` applies the
built-in rule (IMEIs ending in 0000 are treated as reported) plus any
configured IMEIs; ``HttpBlacklistRegistry`` asks a remote service.
Lookups are wrapped by ``check_blacklist`` in the verification service,
which bounds them with a timeout.
"""

import json
import logging
import urllib.parse
import urllib.request
from dataclasses import dataclass

from storda.config import settings

logger = logging.getLogger(__name__)


@dataclass
class BlacklistResult:
    is_blacklisted: bool
    reason: str | None = None
    checked: bool = True  # False when the registry could not be reached


class LocalBlacklist:
    """Built-in rule plus a static list of reported IMEIs."""

    def __init__(self, imeis: list[str] | None = None):
        self._imeis = set(imeis or [])

    def lookup(self, imei: str) -> BlacklistResult:
        if imei in self._imeis:
            return BlacklistResult(True, "IMEI is on the reported devices list")
        if imei.endswith("0000"):
            return BlacklistResult(True, "IMEI is flagged by the national registry")
        return BlacklistResult(False)


class HttpBlacklistRegistry:
    """Remote registry: GET <url>?imei=... -> {"blacklisted": bool, "reason": str}.

    The local rule is applied first so known-bad IMEIs never cost a request.
    """

    def __init__(self, url: str, timeout: float, fallback: LocalBlacklist | None = None):
        self.url = url
        self.timeout = timeout
        self.fallback = fallback or LocalBlacklist()

    def lookup(self, imei: str) -> BlacklistResult:
        local = self.fallback.lookup(imei)
        if local.is_blacklisted:
            return local

        query = urllib.parse.urlencode({"imei": imei})
        sep = "&" if "?" in self.url else "?"
        req = urllib.request.Request(
            f"{self.url}{sep}{query}",
            headers={"Accept": "application/json", "User-Agent": "StordaRegistry/1.0"},
        )
        with urllib.request.urlopen(req, timeout=self.timeout) as resp:
            data = json.loads(resp.read().decode("utf-8"))

        return BlacklistResult(
            is_blacklisted=bool(data.get("blacklisted")),
            reason=data.get("reason"),
        )


def build_registry():
    """Registry configured by STORDA_BLACKLIST_URL (local rule when unset)."""
    local = LocalBlacklist(settings.blacklisted_imeis)
    if settings.blacklist_url:
        logger.info("Using remote blacklist registry: %s", settings.blacklist_url)
        return HttpBlacklistRegistry(settings.blacklist_url, settings.blacklist_timeout_seconds, local)
    return local
