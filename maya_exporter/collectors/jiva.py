"""Jiva volume source: statistics over HTTP/JSON from the jiva controller"""
import logging
from typing import Callable, Optional
from urllib.parse import urlsplit, urlunsplit

import httpx

from maya_exporter.errors import ParseError, SourceConnectionError
from maya_exporter.metrics.models import Stats, VolumeStats


logger = logging.getLogger(__name__)

STATS_PATH = "/v1/stats"
REQUEST_TIMEOUT = 1.0
IQN_PREFIX = "iqn.2016-09.com.openebs.jiva:"


class JivaSource:
    """Fetches one snapshot of volume stats from the jiva controller"""

    cas_type = "jiva"

    def __init__(self, controller_address: str, client: Optional[httpx.Client] = None,
                 timeout: float = REQUEST_TIMEOUT):
        parts = urlsplit(controller_address)
        if not parts.scheme or not parts.netloc:
            raise ValueError(f"invalid controller address: {controller_address!r}")
        self.url = urlunsplit((parts.scheme, parts.netloc, STATS_PATH, "", ""))
        self._client = client or httpx.Client(timeout=timeout)

    def get(self) -> VolumeStats:
        """GET /v1/stats and decode the body into raw stats"""
        try:
            response = self._client.get(self.url)
        except httpx.HTTPError as e:
            raise SourceConnectionError(f"error in getting volume stats from {self.url}: {e}") from e

        try:
            stats = VolumeStats.from_dict(response.json())
        except (ValueError, TypeError) as e:
            raise ParseError(f"error in decoding volume stats from {self.url}: {e}") from e

        stats.target_address = self.url
        stats.got = True
        return stats

    def parse(self, volume_stats: VolumeStats, on_error: Optional[Callable[[], None]] = None) -> Stats:
        """Derive numeric stats from a raw jiva snapshot"""
        if not volume_stats.got:
            logger.warning("can't parse, got empty stats, jiva controller may not be reachable")
            return Stats()

        stats = Stats.from_volume_stats(volume_stats, self.cas_type, on_error)
        stats.name = str(volume_stats.name or "")
        stats.iqn = IQN_PREFIX + stats.name
        stats.address = target_address(volume_stats.target_address or self.url)
        return stats

    def close(self):
        self._client.close()


def target_address(url: str) -> str:
    """Strip the scheme and the controller port/path from a controller URL"""
    address = url
    if address.endswith(":9501" + STATS_PATH):
        address = address[: -len(":9501" + STATS_PATH)]
    if address.startswith("http://"):
        address = address[len("http://"):]
    return address
