"""
TracePlan Common Utilities

Shared utilities and helpers used across TracePlan modules.
"""

from .utils import (
    get_api_key_from_env,
    safe_json_parse,
    pretty_json_body,
    filter_noise_headers,
    headers_to_pairs,
    headers_to_map,
)
from .ai_utils import (
    ChatClient,
    OpenAIChatClient,
    AnthropicChatClient,
    create_chat_client,
    check_connection,
    model_family,
    OPENAI_AVAILABLE,
    ANTHROPIC_AVAILABLE,
)
from .url_utils import URLMatcher

__all__ = [
    'get_api_key_from_env',
    'safe_json_parse',
    'pretty_json_body',
    'filter_noise_headers',
    'headers_to_pairs',
    'headers_to_map',
    'ChatClient',
    'OpenAIChatClient',
    'AnthropicChatClient',
    'create_chat_client',
    'check_connection',
    'model_family',
    'OPENAI_AVAILABLE',
    'ANTHROPIC_AVAILABLE',
    'URLMatcher'
]
