"""cStor volume source: statistics over the istgt UNIX control socket

Protocol, per connection:

    <- "iSCSI Target Controller version ...\\r\\n"      header, read once
    -> "IOSTATS\\n"
    <- "IOSTATS  {json}\\r\\nOK IOSTATS\\r\\n"             possibly in many chunks

The connection is opened lazily by the first ``get`` and kept open. Any I/O
error closes it and the next ``get`` dials again.
"""
import json
import logging
import socket
import threading
from typing import Callable, Optional

from maya_exporter.errors import ParseError, SourceConnectionError
from maya_exporter.metrics.models import Stats, VolumeStats


logger = logging.getLogger(__name__)

SOCKET_PATH = "/var/run/istgt_ctl_sock"
HEADER_PREFIX = "iSCSI Target Controller version"
EOF = "\r\n"
FOOTER = "OK IOSTATS"
COMMAND = "IOSTATS"
BUF_SIZE = 1024
TARGET_ADDRESS = "127.0.0.1"


def dial_unix(path: str) -> socket.socket:
    """Connect a stream socket to ``path``"""
    conn = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    try:
        conn.connect(path)
    except OSError:
        conn.close()
        raise
    return conn


def splitter(response: str) -> str:
    """Extract the JSON payload from a framed IOSTATS response"""
    lines = [line for line in response.split(EOF) if line != FOOTER]
    for line in lines:
        if not line:
            continue
        prefix = COMMAND + "  "
        if line.startswith(prefix):
            return line[len(prefix):]
        return line
    return ""


class CstorSource:
    """Fetches one snapshot of volume stats from istgt"""

    cas_type = "cstor"

    def __init__(self, socket_path: str = SOCKET_PATH,
                 dial: Optional[Callable[[str], socket.socket]] = None,
                 io_timeout: Optional[float] = None):
        self.socket_path = socket_path
        self.io_timeout = io_timeout
        self._dial = dial or dial_unix
        self._lock = threading.Lock()
        self._conn: Optional[socket.socket] = None

    @property
    def connected(self) -> bool:
        return self._conn is not None

    def get(self) -> VolumeStats:
        """Request IOSTATS over the control socket and decode the reply.

        Only one request is on the wire at a time; concurrent callers queue on
        the source lock.
        """
        with self._lock:
            if self._conn is None:
                logger.debug("Initiate connection")
                self._connect()

            try:
                logger.debug("Request istgt to get volume stats")
                self._conn.sendall((COMMAND + "\n").encode())
                logger.debug("Read response from istgt")
                response = self._read_until(lambda buf: len(buf) >= 12 and buf.endswith(FOOTER + EOF))
            except (OSError, SourceConnectionError) as e:
                self.close()
                raise SourceConnectionError(f"{e}: closing connection") from e

            payload = splitter(response)
            if not payload:
                raise ParseError("Got empty response from cstor")

            try:
                stats = VolumeStats.from_dict(json.loads(payload))
            except (ValueError, TypeError) as e:
                logger.error(f"Got response: {response!r}")
                raise ParseError(f"error in unmarshalling cstor response: {e}") from e

        stats.target_address = TARGET_ADDRESS
        stats.got = True
        return stats

    def parse(self, volume_stats: VolumeStats, on_error: Optional[Callable[[], None]] = None) -> Stats:
        """Derive numeric stats from a raw cstor snapshot"""
        if not volume_stats.got:
            logger.warning("can't parse, got empty stats, istgt may not be reachable")
            return Stats()

        stats = Stats.from_volume_stats(volume_stats, self.cas_type, on_error)
        fields = volume_stats.iqn.split(":")
        stats.name = fields[1] if len(fields) > 1 else ""
        stats.address = TARGET_ADDRESS
        return stats

    def close(self):
        """Shut the connection down; safe to call when already closed"""
        conn, self._conn = self._conn, None
        if conn is None:
            return
        try:
            conn.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        conn.close()

    def _connect(self):
        try:
            conn = self._dial(self.socket_path)
        except OSError as e:
            raise SourceConnectionError(f"Can't connect to istgt: {e}") from e
        if self.io_timeout:
            conn.settimeout(self.io_timeout)
        self._conn = conn

        try:
            header = self._read_until(lambda buf: buf.startswith(HEADER_PREFIX) and buf.endswith(EOF))
        except (OSError, SourceConnectionError) as e:
            logger.error(f"Error in reading header, error: {e}")
            self.close()
            raise SourceConnectionError(f"Can't read header from istgt: {e}") from e
        logger.debug(f"Connection established with istgt, got header: {header!r}")

    def _read_until(self, done: Callable[[str], bool]) -> str:
        buffer = bytearray()
        while True:
            chunk = self._conn.recv(BUF_SIZE)
            if not chunk:
                raise SourceConnectionError("connection closed by istgt")
            buffer.extend(chunk)
            text = buffer.decode("utf-8", errors="replace")
            if done(text):
                return text
