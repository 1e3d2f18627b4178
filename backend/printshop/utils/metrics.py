"""Fire-and-forget StatsD counters, gauges and timings.

Nothing is emitted unless ``METRICS_STATSD_ADDR`` ("host:port") is set.
``METRICS_TAGS=0`` drops the Datadog ``|#key:val`` suffix for plain StatsD.
"""

from __future__ import annotations

import logging
import os
import socket
from typing import Dict, Optional

logger = logging.getLogger(__name__)

Tags = Optional[Dict[str, object]]


def format_tags(tags: Tags) -> str:
    parts = [
        f"{str(k).replace(',', '_')}:{str(v).replace(',', '_')}"
        for k, v in (tags or {}).items()
        if k is not None
    ]
    return "|#" + ",".join(parts) if parts else ""


class StatsdClient:
    def __init__(self, addr: str = "", use_tags: bool = True) -> None:
        self.addr = addr.strip()
        self.use_tags = use_tags
        self._sock: Optional[socket.socket] = None
        self._broken = False

    @classmethod
    def from_env(cls) -> "StatsdClient":
        return cls(
            os.getenv("METRICS_STATSD_ADDR", ""),
            use_tags=os.getenv("METRICS_TAGS", "1").lower() not in ("0", "false"),
        )

    def _socket(self) -> Optional[socket.socket]:
        if not self.addr or self._broken:
            return None
        if self._sock is None:
            try:
                host, port = self.addr.rsplit(":", 1)
                sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
                sock.connect((host, int(port)))
            except (OSError, ValueError):
                logger.warning("metrics.sink_unavailable", extra={"addr": self.addr})
                self._broken = True
                return None
            self._sock = sock
        return self._sock

    def emit(self, name: str, value: str, kind: str, tags: Tags = None) -> None:
        sock = self._socket()
        if sock is None:
            return
        line = f"{name}:{value}|{kind}"
        if self.use_tags:
            line += format_tags(tags)
        try:
            sock.send(line.encode("utf-8"))
        except OSError:
            # UDP sink gone; drop the sample
            pass


statsd = StatsdClient.from_env()


def incr(name: str, value: int = 1, tags: Tags = None) -> None:
    statsd.emit(name, str(int(value)), "c", tags)


def gauge(name: str, value: float, tags: Tags = None) -> None:
    statsd.emit(name, f"{float(value):g}", "g", tags)


def timing_ms(name: str, ms: float, tags: Tags = None) -> None:
    statsd.emit(name, f"{float(ms):.2f}", "ms", tags)
