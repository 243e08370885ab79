"""Scrape-driven collectors"""
from .base import BaseCollector
from .sql import SQLExporter

__all__ = [
    'BaseCollector',
    'SQLExporter'
]
