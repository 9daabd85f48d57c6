"""
HAR 1.2 parsing for TracePlan.

Turns `log.entries` into raw TrafficRecords. Filtering and deduplication
happen later in the normalizer.
"""

import logging
from typing import Any, Dict, List, Optional

from ..common.utils import filter_noise_headers, headers_to_pairs, pretty_json_body
from .records import TrafficRecord

logger = logging.getLogger(__name__)


def is_har_document(document: Any) -> bool:
    """Return True if a parsed JSON document has a `log.entries` list."""
    if not isinstance(document, dict):
        return False
    log = document.get('log')
    return isinstance(log, dict) and isinstance(log.get('entries'), list)


class HarParser:
    """Parse HAR documents into TrafficRecords."""

    def __init__(self, document: Dict[str, Any]):
        self.document = document

    def get_records(self) -> List[TrafficRecord]:
        """
        Convert every well-formed HAR entry into a TrafficRecord.

        Entries missing request.method, request.url or a response object
        are dropped and logged.

        Returns:
            List of records in document order
        """
        entries = self.document.get('log', {}).get('entries', [])
        records: List[TrafficRecord] = []

        for position, entry in enumerate(entries):
            record = self.parse_entry(entry)
            if record is None:
                logger.info(f"Skipping malformed HAR entry #{position}")
                continue
            records.append(record)

        return records

    @staticmethod
    def parse_entry(entry: Any) -> Optional[TrafficRecord]:
        """
        Convert one HAR entry, or return None if it is malformed.

        Args:
            entry: One element of log.entries

        Returns:
            TrafficRecord, or None
        """
        if not isinstance(entry, dict):
            return None

        request = entry.get('request')
        response = entry.get('response')
        if not isinstance(request, dict) or not isinstance(response, dict):
            return None

        method = request.get('method')
        url = request.get('url')
        if not method or not url:
            return None

        headers = filter_noise_headers(headers_to_pairs(request.get('headers') or []))

        post_data = request.get('postData') or {}
        body_text = post_data.get('text') if isinstance(post_data, dict) else None

        status = response.get('status')
        try:
            status = int(status) if status is not None else None
        except (TypeError, ValueError):
            status = None

        return TrafficRecord(
            method=str(method).upper(),
            url=str(url),
            headers=tuple(headers),
            request_body=pretty_json_body(body_text),
            response_status=status,
            response_body=_json_response_body(response)
        )


def _json_response_body(response: Dict[str, Any]) -> Optional[str]:
    """Response body text, kept only for application/json content."""
    content = response.get('content') or {}
    if not isinstance(content, dict):
        return None

    mime_type = str(content.get('mimeType') or '').lower()
    if 'application/json' not in mime_type:
        return None
    return content.get('text') or None
