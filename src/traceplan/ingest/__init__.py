"""
TracePlan Ingest Module

Turns captured traffic into deduplicated API records.

This module provides:
- HAR 1.2 and Postman v1 / v2.x parsing
- Static asset, telemetry and non-API filtering
- Endpoint deduplication by method + path
"""

from .records import TrafficRecord, EndpointKey
from .filters import TrafficFilter
from .har_parser import HarParser
from .postman_parser import PostmanParser, PostmanRequest
from .normalizer import normalize, deduplicate, detect_format, endpoint_key

__all__ = [
    # Records
    'TrafficRecord',
    'EndpointKey',

    # Parsing
    'HarParser',
    'PostmanParser',
    'PostmanRequest',
    'TrafficFilter',

    # Normalizer
    'normalize',
    'deduplicate',
    'detect_format',
    'endpoint_key',
]
