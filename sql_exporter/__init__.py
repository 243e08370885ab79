"""Prometheus exporter that publishes SQL query results as metrics"""

__version__ = "0.1.0"
