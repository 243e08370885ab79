"""Metric data models"""
from .models import QueryMetricFamily, validate_label_names

__all__ = [
    'QueryMetricFamily',
    'validate_label_names'
]
