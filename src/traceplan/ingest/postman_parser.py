"""
Parse Postman Collection v1 and v2.x JSON documents.

Flattens folder-nested items into leaf requests and resolves each
request's URL, headers, and body into plain strings.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

from ..common.utils import headers_to_map
from ..errors import FormatError

logger = logging.getLogger(__name__)

# Body modes in extraction priority order
BODY_MODES = ('raw', 'urlencoded', 'formdata')


@dataclass
class PostmanRequest:
    """Represents a single Postman request."""
    name: str
    method: str
    url: str
    headers: List[Tuple[str, str]] = field(default_factory=list)
    body: str = ''
    folder_path: List[str] = field(default_factory=list)


def is_postman_collection(document: Any) -> bool:
    """Return True if a parsed JSON document looks like a Postman collection."""
    if not isinstance(document, dict):
        return False

    info = document.get('info')
    if isinstance(info, dict):
        schema = str(info.get('schema', ''))
        if 'postman' in schema or info.get('_postman_id') or info.get('postman_id'):
            return True

    # v1 exports have no info block
    return isinstance(document.get('requests'), list) and 'log' not in document


class PostmanParser:
    """Parse Postman Collection v1 / v2.x JSON."""

    def __init__(self, collection: Dict[str, Any]):
        """
        Initialize parser.

        Args:
            collection: Parsed collection document

        Raises:
            FormatError: If the collection version is not supported
        """
        self.collection = collection
        self.version = self._detect_version()

    def _detect_version(self) -> str:
        info = self.collection.get('info')
        schema = str(info.get('schema', '')) if isinstance(info, dict) else ''

        if 'v2' in schema:
            return 'v2'
        if 'v1' in schema:
            return 'v1'

        # No usable schema URL: fall back to the document shape
        if isinstance(self.collection.get('item'), list):
            return 'v2'
        if isinstance(self.collection.get('requests'), list):
            return 'v1'

        raise FormatError('Unsupported Postman Collection version')

    def get_requests(self) -> List[PostmanRequest]:
        """
        Get all requests in document order, including requests nested in folders.

        Returns:
            List of PostmanRequest objects
        """
        requests: List[PostmanRequest] = []

        if self.version == 'v2':
            items = self.collection.get('item') or []
            if not isinstance(items, list):
                raise FormatError("Invalid Postman v2 collection: 'item' must be a list")
            self._extract_requests_recursive(items, [], requests)
        else:
            entries = self.collection.get('requests') or []
            if not isinstance(entries, list):
                raise FormatError("Invalid Postman v1 collection: 'requests' must be a list")
            for entry in entries:
                if isinstance(entry, dict):
                    requests.append(self._parse_request_v1(entry))

        logger.debug(f"Postman {self.version}: {len(requests)} requests")
        return requests

    def _extract_requests_recursive(
        self,
        items: List[Any],
        folder_path: List[str],
        requests: List[PostmanRequest]
    ):
        """Recursively extract requests from items and folders."""
        for item in items:
            if not isinstance(item, dict):
                continue
            if isinstance(item.get('item'), list):
                # This is a folder
                folder_name = item.get('name', 'Unnamed Folder')
                self._extract_requests_recursive(item['item'], folder_path + [folder_name], requests)
            elif 'request' in item:
                requests.append(self._parse_request_v2(item, folder_path))

    def _parse_request_v2(self, item: Dict[str, Any], folder_path: List[str]) -> PostmanRequest:
        """Parse a single v2 request item."""
        request_data = item.get('request') or {}

        # A bare string request is shorthand for a GET to that URL
        if isinstance(request_data, str):
            request_data = {'url': request_data, 'method': 'GET'}

        body = request_data.get('body')
        return PostmanRequest(
            name=item.get('name', 'Unnamed Request'),
            method=str(request_data.get('method') or 'GET').upper(),
            url=self._extract_url(request_data.get('url')),
            headers=list(headers_to_map(request_data.get('header') or []).items()),
            body=self._parse_body(body) if isinstance(body, dict) else '',
            folder_path=list(folder_path)
        )

    def _parse_request_v1(self, entry: Dict[str, Any]) -> PostmanRequest:
        """Parse a single v1 request entry."""
        body = entry.get('rawModeData') or ''
        if not body:
            data = entry.get('data')
            if isinstance(data, list):
                body = self._join_params(data)
            elif data:
                body = str(data)

        return PostmanRequest(
            name=entry.get('name', 'Unnamed Request'),
            method=str(entry.get('method') or 'GET').upper(),
            url=self._extract_url(entry.get('url')),
            headers=list(headers_to_map(entry.get('headers') or []).items()),
            body=body
        )

    def _extract_url(self, url_data: Any) -> str:
        """Extract URL from string or structured Postman formats."""
        # String format
        if isinstance(url_data, str):
            return url_data

        # Object format
        if isinstance(url_data, dict):
            # Try raw URL first
            raw = url_data.get('raw')
            if raw:
                return str(raw)

            # Reconstruct from components
            protocol = url_data.get('protocol', 'https')
            host = url_data.get('host', [])
            path = url_data.get('path', [])
            query = url_data.get('query', [])

            url_parts = []

            if host:
                host_str = '.'.join(host) if isinstance(host, list) else str(host)
                url_parts.append(f"{protocol}://{host_str}")

            if path:
                path_str = '/'.join(str(p) for p in path) if isinstance(path, list) else str(path)
                if not path_str.startswith('/'):
                    path_str = '/' + path_str
                url_parts.append(path_str)

            if query and isinstance(query, list):
                query_params = []
                for param in query:
                    if isinstance(param, dict) and not param.get('disabled', False):
                        key = param.get('key', '')
                        value = param.get('value', '')
                        query_params.append(f"{key}={'' if value is None else value}")
                if query_params:
                    url_parts.append('?' + '&'.join(query_params))

            return ''.join(url_parts)

        return ''

    def _parse_body(self, body_data: Dict[str, Any]) -> str:
        """
        Flatten a v2 request body to text.

        The declared mode is used when present; otherwise the first of
        raw, urlencoded, formdata that carries content wins.
        """
        mode = body_data.get('mode')
        modes = [mode] if mode in BODY_MODES else list(BODY_MODES)

        for candidate in modes:
            content = body_data.get(candidate)
            if not content:
                continue
            if candidate == 'raw':
                return str(content)
            if isinstance(content, list):
                return self._join_params(content)

        return ''

    @staticmethod
    def _join_params(params: List[Any]) -> str:
        """Render key/value parameter lists as key=value&key=value."""
        pairs = []
        for param in params:
            if isinstance(param, dict) and not param.get('disabled', False):
                value = param.get('value')
                pairs.append(f"{param.get('key', '')}={'' if value is None else value}")
        return '&'.join(pairs)
