"""
Filtering logic for TracePlan.

Decides whether a captured request is an API call worth generating tests
for: allowed method, not a static asset, not analytics/tracking/CDN
traffic, and an API-looking path. An optional host allowlist narrows the
input further.
"""

import logging
import re
from typing import Iterable, List, Optional

from ..common.url_utils import URLMatcher

logger = logging.getLogger(__name__)


ALLOWED_METHODS = frozenset(['GET', 'POST', 'PUT', 'DELETE'])

STATIC_EXTENSIONS = (
    '.js', '.css', '.png', '.jpg', '.jpeg', '.gif',
    '.svg', '.ico', '.woff', '.woff2', '.ttf', '.eot',
    '.map', '.json', '.html', '.htm',
)

# Host fragments matched as case-insensitive substrings
EXCLUDED_DOMAINS = (
    # Google / GA / GTM
    'google-analytics.com',
    'analytics.google.com',
    'googletagmanager.com',
    'g.doubleclick.net',
    'googlesyndication.com',
    'adservice.google.com',
    # Facebook / Meta
    'facebook.com',
    'connect.facebook.net',
    # LinkedIn
    'snap.licdn.com',
    'ads.linkedin.com',
    # Twitter
    'analytics.twitter.com',
    'ads-twitter.com',
    # Microsoft Clarity
    'clarity.ms',
    # Hotjar
    'hotjar.com',
    # Mixpanel
    'mixpanel.com',
    'cdn.mxpnl.com',
    # Segment
    'segment.com',
    'segment.io',
    # Crazy Egg
    'crazyegg.com',
    # HubSpot
    'hubspot.com',
    # Adobe Analytics
    'omtrdc.net',
    'adobe.io',
    # Kissmetrics
    'kissmetrics.io',
    'kissmetrics.com',
    # Quantcast
    'quantserve.com',
    # Amplitude
    'amplitude.com',
    # Cloudflare
    'cloudflareinsights.com',
    # New Relic
    'newrelic.com',
    # Datadog
    'datadoghq.com',
    # LogRocket
    'logrocket.io',
    # Shopify
    'shopify.com',
    # Wix
    'wix.com',
    'parastorage.com',
    # Open source analytics
    'plausible.io',
    'matomo.cloud',
    'simpleanalyticscdn.com',
    # Generic patterns
    'analytics',
    'tracking',
    'cdn.',
    'fonts.',
    'google.com',
)

_VERSIONED_PATH = re.compile(r'/v([1-9][0-9]{0,2}|1000)/')


class TrafficFilter:
    """
    Handles filtering logic to determine which requests are API calls.

    Supports:
    - Method allowlist (GET, POST, PUT, DELETE)
    - Static asset extension denylist
    - Analytics / tracking / CDN host denylist (substring match)
    - API path heuristics (/api/, /v1/, /rest/, /graphql, /services/)
    - Optional host allowlist with exact and wildcard matching
    """

    def __init__(
        self,
        host_filters: Optional[List[str]] = None,
        excluded_domains: Iterable[str] = EXCLUDED_DOMAINS,
        static_extensions: Iterable[str] = STATIC_EXTENSIONS,
        allowed_methods: Iterable[str] = ALLOWED_METHODS
    ):
        """
        Initialize the filter.

        Args:
            host_filters: Hosts to keep (supports "*.example.com"); empty keeps all
            excluded_domains: Host fragments to drop
            static_extensions: Path suffixes to drop
            allowed_methods: HTTP methods to keep
        """
        self.host_filters = host_filters or []
        self.excluded_domains = tuple(d.lower() for d in excluded_domains)
        self.static_extensions = tuple(e.lower() for e in static_extensions)
        self.allowed_methods = frozenset(m.upper() for m in allowed_methods)

    def should_keep(self, method: str, url: str) -> bool:
        """
        Determine if a request should be kept for test generation.

        Args:
            method: HTTP method
            url: Request URL (absolute or {{templated}})

        Returns:
            True if the request looks like an API call, False otherwise
        """
        reason = self.exclusion_reason(method, url)
        if reason:
            logger.debug(f"[SKIP] {method} {url} ({reason})")
            return False
        return True

    def exclusion_reason(self, method: str, url: str) -> Optional[str]:
        """Return why a request is excluded, or None if it is kept."""
        if not URLMatcher.is_valid_url(url):
            return 'not an http(s) or template URL'

        if (method or '').upper() not in self.allowed_methods:
            return f"method {method} not allowed"

        try:
            components = URLMatcher.parse_url_components(url)
        except ValueError:
            return 'unparseable URL'

        host = components['hostname']
        path = components['path'].lower()

        if path.endswith(self.static_extensions):
            return 'static asset'

        for domain in self.excluded_domains:
            if domain in host:
                return f"excluded domain: {domain}"

        if self.host_filters and not self._host_allowed(host):
            return 'host not in filter list'

        if not self._looks_like_api(path):
            return 'not an API path'

        return None

    def _host_allowed(self, host: str) -> bool:
        """Exact or wildcard host match against host_filters."""
        for filter_host in self.host_filters:
            filter_host = filter_host.lower()

            # Exact match: filter_host == host
            if filter_host == host:
                return True

            # Wildcard match: *.example.com matches api.example.com and example.com
            if filter_host.startswith('*.'):
                domain = filter_host[2:]
                if host.endswith('.' + domain) or host == domain:
                    return True

        return False

    @staticmethod
    def _looks_like_api(path: str) -> bool:
        # Any absolute path qualifies; the specific markers document intent
        return (
            '/api/' in path
            or bool(_VERSIONED_PATH.search(path))
            or '/rest/' in path
            or '/graphql' in path
            or path.startswith('/services/')
            or path.startswith('/')
        )
