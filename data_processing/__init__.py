"""
Serverless Data Processing Service

Ingests product records from CSV files dropped into an object bucket and
from a synchronous REST endpoint, validates and enriches each record,
persists it to a keyed record store and publishes an outcome notification.
"""

__version__ = "1.0.0"
