"""
TracePlan Common Utilities

Shared JSON and header helpers used by the ingest and generate modules.
"""

import json
import os
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple


# Environment variable holding the API key, per provider
API_KEY_ENV_VARS = {
    'openai': 'OPENAI_API_KEY',
    'azure': 'AZURE_OPENAI_API_KEY',
    'anthropic': 'ANTHROPIC_API_KEY',
}

# Browser-generated headers that carry no information about the API contract
NOISE_HEADERS = frozenset([
    ':authority',
    ':method',
    ':path',
    ':scheme',
    'accept-language',
    'accept-encoding',
    'cache-control',
    'content-length',
    'connection',
    'cookie',
    'origin',
    'pragma',
    'referer',
    'sec-ch-ua',
    'sec-ch-ua-mobile',
    'sec-ch-ua-platform',
    'sec-fetch-dest',
    'sec-fetch-mode',
    'sec-fetch-site',
    'sec-fetch-user',
    'upgrade-insecure-requests',
    'user-agent',
    'x-requested-with',
])


def get_api_key_from_env(
    provider: str = 'openai',
    environ: Optional[Mapping[str, str]] = None
) -> Optional[str]:
    """
    Retrieve the provider API key from its environment variable.

    API keys are never accepted via CLI arguments to keep them out of
    process lists and shell history.

    Args:
        provider: Provider name (openai, azure, anthropic)
        environ: Environment mapping (defaults to os.environ)

    Returns:
        API key, or None if the variable is unset or the provider unknown
    """
    env_var = API_KEY_ENV_VARS.get(provider)
    if not env_var:
        return None
    env = os.environ if environ is None else environ
    return env.get(env_var) or None


def safe_json_parse(json_string: Any, default: Any = None) -> Any:
    """
    Safely parse JSON string with error handling.

    Args:
        json_string: JSON string (or bytes) to parse
        default: Default value to return if parsing fails

    Returns:
        Parsed JSON object, or default if parsing fails
    """
    if not json_string:
        return default

    try:
        return json.loads(json_string)
    except (json.JSONDecodeError, TypeError, ValueError):
        return default


def pretty_json_body(text: Optional[str]) -> Optional[str]:
    """
    Pretty-print a request body when it is valid JSON.

    Args:
        text: Raw body text

    Returns:
        Indented JSON text, the original text if it is not JSON, or None
        for an empty body
    """
    if not text:
        return None

    parsed = safe_json_parse(text, default=None)
    if parsed is None or not isinstance(parsed, (dict, list)):
        return text
    return json.dumps(parsed, indent=2, ensure_ascii=False)


def filter_noise_headers(headers: Iterable[Tuple[str, str]]) -> List[Tuple[str, str]]:
    """
    Drop browser noise headers (case-insensitive name match).

    Args:
        headers: Iterable of (name, value) pairs

    Returns:
        Remaining (name, value) pairs in their original order
    """
    return [
        (name, value) for name, value in headers
        if name and name.lower() not in NOISE_HEADERS
    ]


def headers_to_pairs(headers: Any) -> List[Tuple[str, str]]:
    """
    Flatten the header shapes found in HAR and Postman documents.

    Supports a name->value dict, a list of {name|key, value, disabled}
    objects, and the Postman v1 "Name: value\\n" string.

    Args:
        headers: Headers in any supported shape

    Returns:
        List of (name, value) pairs; disabled entries are skipped
    """
    pairs: List[Tuple[str, str]] = []

    if isinstance(headers, dict):
        for name, value in headers.items():
            pairs.append((str(name), '' if value is None else str(value)))

    elif isinstance(headers, list):
        for header in headers:
            if not isinstance(header, dict) or header.get('disabled'):
                continue
            name = header.get('name') or header.get('key') or ''
            if not name:
                continue
            value = header.get('value')
            pairs.append((str(name), '' if value is None else str(value)))

    elif isinstance(headers, str):
        for line in headers.splitlines():
            if ':' not in line:
                continue
            name, value = line.split(':', 1)
            if name.strip():
                pairs.append((name.strip(), value.strip()))

    return pairs


def headers_to_map(headers: Any) -> Dict[str, str]:
    """
    Flatten headers into a name->value map; a repeated name keeps its
    last value.
    """
    return dict(headers_to_pairs(headers))
