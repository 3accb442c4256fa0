"""Base collector class and interfaces"""
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Iterator, List

from prometheus_client import Gauge
from prometheus_client.metrics_core import Metric

from maya_exporter.errors import RejectedError


class BaseCollector(ABC):
    """Base class for all metric collectors.

    A collector owns a fixed set of gauges. The registry calls ``describe``
    once at registration and ``collect`` on every scrape; ``collect`` may be
    entered concurrently by overlapping scrapes.
    """

    def __init__(self, config=None, name: str = "", help_text: str = ""):
        self.config = config
        self._name = name
        self._help_text = help_text

    @property
    def name(self) -> str:
        """Collector name for identification"""
        return self._name

    @property
    def help_text(self) -> str:
        """Help text describing what this collector does"""
        return self._help_text or f"{self.name} metrics collector"

    @abstractmethod
    def gauges(self) -> List[Gauge]:
        """Gauges owned by this collector, in exposition order"""

    @abstractmethod
    def collect(self) -> List[Metric]:
        """Refresh the gauges and return their current samples"""

    def describe(self) -> List[Metric]:
        """Descriptors of every gauge this collector can emit"""
        descriptors = []
        for gauge in self.gauges():
            descriptors.extend(gauge.describe())
        return descriptors

    def emit(self) -> List[Metric]:
        """Current samples of every owned gauge"""
        metrics = []
        for gauge in self.gauges():
            metrics.extend(gauge.collect())
        return metrics

    def cleanup(self):
        """Release sources held by the collector"""


class AdmissionGate:
    """Admits one scrape at a time and turns the others away.

    The flag is set and cleared by the same thread, under a mutex that is
    never held across the scrape itself.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._in_flight = False

    @property
    def in_flight(self) -> bool:
        with self._lock:
            return self._in_flight

    @contextmanager
    def admit(self) -> Iterator[None]:
        with self._lock:
            if self._in_flight:
                raise RejectedError("request already in progress")
            self._in_flight = True
        try:
            yield
        finally:
            with self._lock:
                self._in_flight = False
