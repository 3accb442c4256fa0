"""Error taxonomy for collectors and sources

Every error raised by a source adapter is absorbed by its collector and
translated into an error counter; none of them reach the HTTP handler.
"""


class ExporterError(Exception):
    """Base class for all exporter errors"""


class SourceConnectionError(ExporterError):
    """Transport level failure while talking to a source (dial, read, write)"""


class ParseError(ExporterError):
    """Malformed payload from an otherwise reachable source"""


class CommandError(ExporterError):
    """Child process exited non-zero or ran past its deadline"""

    def __init__(self, message: str, output: bytes = b"", timed_out: bool = False):
        super().__init__(message)
        self.output = output
        self.timed_out = timed_out


class RejectedError(ExporterError):
    """A scrape was refused because another one is still in flight"""
