"""
TracePlan URL Utilities

URL parsing helpers shared by the traffic filter and the deduplicator,
including support for Postman-style {{placeholder}} templates.
"""

import re
from typing import Dict, Any, Optional
from urllib.parse import urlparse


TEMPLATE_PATTERN = re.compile(r'{{\s*\w+\s*}}')

# Stand-in origin used when a template URL has to be parsed
PLACEHOLDER_ORIGIN = 'https://placeholder-domain.com'

# Optional scheme and host, then the path up to query/fragment
_FALLBACK_PATH_PATTERN = re.compile(r'^(?:https?://)?([^/?]+)?(/[^?#]*)?')

_DEFAULT_PORTS = {'http': 80, 'https': 443}


class URLMatcher:
    """URL checks and identity keys for captured requests."""

    @staticmethod
    def has_template(url: str) -> bool:
        """Return True if the URL contains a {{placeholder}}."""
        return bool(TEMPLATE_PATTERN.search(url or ''))

    @staticmethod
    def is_valid_url(url: str) -> bool:
        """
        Check that a URL is usable as an API target.

        Template URLs are accepted without resolving the placeholder;
        anything else must be an absolute http(s) URL.

        Args:
            url: URL to check

        Returns:
            True if the URL is templated or absolute http(s)
        """
        if not url:
            return False
        if URLMatcher.has_template(url):
            return True

        try:
            parsed = urlparse(url)
        except ValueError:
            return False
        return parsed.scheme in ('http', 'https') and bool(parsed.netloc)

    @staticmethod
    def resolve_for_checks(url: str) -> str:
        """
        Replace the first {{placeholder}} with a dummy origin.

        Only used so host/path filters can run on template URLs; the
        record itself keeps the template.
        """
        if URLMatcher.has_template(url):
            return TEMPLATE_PATTERN.sub(PLACEHOLDER_ORIGIN, url, count=1)
        return url

    @staticmethod
    def origin(url: str) -> Optional[str]:
        """
        Return scheme://host[:port] for an absolute http(s) URL.

        Host is lower-cased and default ports are omitted. Returns None
        when the URL is not absolute.
        """
        try:
            parsed = urlparse(url)
            port = parsed.port
        except ValueError:
            return None

        scheme = parsed.scheme.lower()
        if scheme not in _DEFAULT_PORTS or not parsed.hostname:
            return None

        host = parsed.hostname.lower()
        if port and port != _DEFAULT_PORTS[scheme]:
            host = f"{host}:{port}"
        return f"{scheme}://{host}"

    @staticmethod
    def dedup_path(url: str) -> Optional[str]:
        """
        Identity of a URL for deduplication, ignoring query and fragment.

        Absolute URLs map to origin + pathname. Templated or relative URLs
        fall back to the path component extracted with a regex, so
        {{base_url}}/v1/token maps to /v1/token.

        Args:
            url: Request URL

        Returns:
            Dedup path, or None if no path can be extracted
        """
        origin = URLMatcher.origin(url)
        if origin:
            path = urlparse(url).path or '/'
            return f"{origin}{path}"

        match = _FALLBACK_PATH_PATTERN.match(url or '')
        if match and match.group(2):
            return match.group(2)
        return None

    @staticmethod
    def parse_url_components(url: str) -> Dict[str, Any]:
        """
        Parse URL into components for the filters.

        Args:
            url: URL to parse (templates are resolved to a dummy origin)

        Returns:
            Dict with scheme, hostname and path (hostname lower-cased)
        """
        parsed = urlparse(URLMatcher.resolve_for_checks(url))
        return {
            'scheme': parsed.scheme,
            'hostname': (parsed.hostname or '').lower(),
            'path': parsed.path or '/',
        }
