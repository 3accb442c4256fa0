"""OpenEBS storage telemetry exporter"""

__version__ = "1.0.0"
