"""
Traffic normalizer: HAR / Postman bytes in, deduplicated API records out.

The normalizer is pure: the same input always yields the same records in
the same order.
"""

import json
import logging
from typing import Dict, Iterable, List, Optional, Union

from ..common.url_utils import URLMatcher
from ..errors import FormatError
from ..common.utils import pretty_json_body
from .filters import TrafficFilter
from .har_parser import HarParser, is_har_document
from .postman_parser import PostmanParser, is_postman_collection
from .records import EndpointKey, TrafficRecord

logger = logging.getLogger(__name__)

SOURCE_FORMATS = ('har', 'postman')


def detect_format(document) -> Optional[str]:
    """
    Detect the capture format of a parsed JSON document.

    Returns:
        'postman', 'har', or None when neither shape matches
    """
    if is_postman_collection(document):
        return 'postman'
    if is_har_document(document):
        return 'har'
    return None


def load_document(raw: Union[bytes, str]):
    """
    Decode and parse the raw input as JSON.

    Raises:
        FormatError: If the input is not valid UTF-8 JSON
    """
    if isinstance(raw, bytes):
        try:
            raw = raw.decode('utf-8-sig')
        except UnicodeDecodeError as e:
            raise FormatError(f"Input is not valid UTF-8: {e}") from e

    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise FormatError(f"Input is not valid JSON: {e}") from e


def endpoint_key(record: TrafficRecord) -> Optional[EndpointKey]:
    """Dedup identity of a record, or None when no path can be extracted."""
    path = URLMatcher.dedup_path(record.url)
    if path is None:
        return None
    return EndpointKey(record.method.upper(), path)


def deduplicate(records: Iterable[TrafficRecord]) -> List[TrafficRecord]:
    """
    Keep the first record for each (method, path) pair.

    Query strings and fragments are ignored. Records whose URL yields no
    path are dropped with a warning.

    Args:
        records: Records in input order

    Returns:
        Unique records in first-seen order
    """
    seen: Dict[EndpointKey, TrafficRecord] = {}
    for record in records:
        key = endpoint_key(record)
        if key is None:
            logger.warning(f"Could not extract a path from {record.url!r}; skipping")
            continue
        if key not in seen:
            seen[key] = record
    return list(seen.values())


def _postman_records(document) -> List[TrafficRecord]:
    records = []
    for request in PostmanParser(document).get_requests():
        records.append(TrafficRecord(
            method=request.method,
            url=request.url,
            headers=tuple(request.headers),
            request_body=pretty_json_body(request.body)
        ))
    return records


def normalize(
    raw: Union[bytes, str],
    source_format_hint: Optional[str] = None,
    traffic_filter: Optional[TrafficFilter] = None
) -> List[TrafficRecord]:
    """
    Parse, filter and deduplicate captured traffic.

    Args:
        raw: HAR or Postman document as bytes or text
        source_format_hint: 'har' or 'postman' to skip detection
        traffic_filter: Filter to apply (default TrafficFilter())

    Returns:
        API records in first-seen order, unique by (method, path)

    Raises:
        FormatError: If the input is neither a HAR file nor a supported
            Postman collection
    """
    if source_format_hint is not None and source_format_hint not in SOURCE_FORMATS:
        raise FormatError(f"Unknown input format: {source_format_hint}")

    document = load_document(raw)
    source_format = source_format_hint or detect_format(document)

    if source_format == 'har':
        if not is_har_document(document):
            raise FormatError("Invalid HAR file: 'log.entries' must be a list")
        records = HarParser(document).get_records()
    elif source_format == 'postman':
        if not isinstance(document, dict):
            raise FormatError('Invalid Postman collection: expected a JSON object')
        records = _postman_records(document)
    else:
        raise FormatError('Unrecognized input: expected a HAR file or a Postman collection')

    traffic_filter = traffic_filter or TrafficFilter()
    kept = [r for r in records if traffic_filter.should_keep(r.method, r.url)]
    unique = deduplicate(kept)

    logger.info(
        f"Normalized {source_format}: {len(records)} requests, "
        f"{len(kept)} API calls, {len(unique)} unique endpoints"
    )
    return unique
