"""
Canonical request records produced by the normalizer.
"""

from dataclasses import dataclass
from typing import Any, Dict, NamedTuple, Optional, Tuple


class EndpointKey(NamedTuple):
    """Identity of an endpoint for deduplication: method + origin/path."""
    method: str
    path: str

    def __str__(self) -> str:
        return f"{self.method} {self.path}"


@dataclass(frozen=True)
class TrafficRecord:
    """One captured HTTP exchange, immutable once normalized."""

    method: str
    url: str
    headers: Tuple[Tuple[str, str], ...] = ()
    request_body: Optional[str] = None
    response_status: Optional[int] = None
    response_body: Optional[str] = None

    @property
    def headers_dict(self) -> Dict[str, str]:
        return dict(self.headers)

    @property
    def label(self) -> str:
        """METHOD URL pair used in prompts."""
        return f"{self.method} {self.url}"

    def to_dict(self) -> Dict[str, Any]:
        """HAR-like view of the record, used as model context."""
        request: Dict[str, Any] = {
            'method': self.method,
            'url': self.url,
            'endpoint': self.url,
            'headers': [{'name': name, 'value': value} for name, value in self.headers],
        }
        if self.request_body is not None:
            request['postData'] = {'text': self.request_body}

        response: Dict[str, Any] = {
            'status': self.response_status or 0,
            'content': {'text': self.response_body} if self.response_body else {},
        }
        return {'request': request, 'response': response}
