"""
AI Utilities for TracePlan

Chat client wrappers for the supported LLM providers and the centralized
factory that builds one from configuration. Clients are constructed
explicitly and injected into the generator; there is no shared global.
"""

import logging
import re
from typing import Any, Dict, Optional, Tuple, TYPE_CHECKING

from ..errors import ConfigError

try:
    import openai
    OPENAI_AVAILABLE = True
except ImportError:
    openai = None
    OPENAI_AVAILABLE = False

try:
    import anthropic
    ANTHROPIC_AVAILABLE = True
except ImportError:
    anthropic = None
    ANTHROPIC_AVAILABLE = False

if TYPE_CHECKING:
    from ..config import GeneratorConfig

logger = logging.getLogger(__name__)

# o1 / o3-mini / o4-mini style reasoning models
_REASONING_MODEL_PATTERN = re.compile(r'^o\d', re.IGNORECASE)

CONNECTION_TEST_PROMPT = 'Reply with a short greeting for test connection.'


def model_family(model: str) -> str:
    """
    Classify a model name.

    Returns:
        "reasoning" for o-series models (max_completion_tokens and
        reasoning_effort), "chat" for everything else (max_tokens and
        temperature)
    """
    if _REASONING_MODEL_PATTERN.match(model or ''):
        return 'reasoning'
    return 'chat'


class ChatClient:
    """
    Request/response contract with an LLM provider.

    complete() takes a system message and a user prompt and returns the
    raw reply text. Any exception it raises is treated by the generator as
    a failed request for that batch.
    """

    model: str = ''

    def complete(self, system: str, prompt: str, json_mode: bool = True) -> str:
        raise NotImplementedError


class OpenAIChatClient(ChatClient):
    """Chat completions against OpenAI or Azure OpenAI."""

    def __init__(
        self,
        client: Any,
        model: str,
        max_tokens: int = 16384,
        temperature: float = 0.3,
        reasoning_effort: str = 'low'
    ):
        """
        Initialize the wrapper.

        Args:
            client: openai.OpenAI / openai.AzureOpenAI instance (or a fake)
            model: Model or Azure deployment name
            max_tokens: Completion token budget
            temperature: Sampling temperature (chat models only)
            reasoning_effort: Effort level (reasoning models only)
        """
        self.client = client
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.reasoning_effort = reasoning_effort

    def build_params(self, system: str, prompt: str, json_mode: bool = True) -> Dict[str, Any]:
        """Build chat.completions.create() kwargs for the model family."""
        params: Dict[str, Any] = {
            'model': self.model,
            'messages': [
                {'role': 'system', 'content': system},
                {'role': 'user', 'content': prompt},
            ],
        }
        if json_mode:
            params['response_format'] = {'type': 'json_object'}

        if model_family(self.model) == 'reasoning':
            params['max_completion_tokens'] = self.max_tokens
            params['reasoning_effort'] = self.reasoning_effort
        else:
            params['max_tokens'] = self.max_tokens
            params['temperature'] = self.temperature
        return params

    def complete(self, system: str, prompt: str, json_mode: bool = True) -> str:
        response = self.client.chat.completions.create(**self.build_params(system, prompt, json_mode))
        content = response.choices[0].message.content
        return content or ''


class AnthropicChatClient(ChatClient):
    """Messages API against Anthropic Claude."""

    def __init__(
        self,
        client: Any,
        model: str,
        max_tokens: int = 8192,
        temperature: float = 0.3
    ):
        self.client = client
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature

    def complete(self, system: str, prompt: str, json_mode: bool = True) -> str:
        # Claude has no JSON response mode; the prompt demands JSON only
        message = self.client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            system=system,
            messages=[{'role': 'user', 'content': prompt}]
        )
        return ''.join(
            getattr(block, 'text', '') for block in message.content
            if getattr(block, 'type', 'text') == 'text'
        )


def _sdk_options(config: 'GeneratorConfig') -> Dict[str, Any]:
    options: Dict[str, Any] = {'max_retries': config.max_retries}
    if config.request_timeout is not None:
        options['timeout'] = config.request_timeout
    return options


def create_chat_client(
    config: 'GeneratorConfig',
    raise_on_error: bool = True,
    verbose: bool = False
) -> Tuple[Optional[ChatClient], bool, str]:
    """
    Create the configured chat client with standardized error handling.

    Args:
        config: Generator configuration (provider, model, api_key, endpoint...)
        raise_on_error: If True, raises ConfigError. If False, returns a None
            client with the error message
        verbose: If True, prints status messages to stdout

    Returns:
        Tuple of (client, is_available, status_message)

    Examples:
        client, _, _ = create_chat_client(config)

        client, available, msg = create_chat_client(config, raise_on_error=False)
        if not available:
            print(msg)
    """
    def fail(message: str) -> Tuple[Optional[ChatClient], bool, str]:
        if raise_on_error:
            raise ConfigError(message)
        if verbose:
            print(f"⚠ {message}")
        return None, False, message

    provider = config.provider

    if provider in ('openai', 'azure') and not OPENAI_AVAILABLE:
        return fail("openai library not installed\n  Install: pip install openai")
    if provider == 'anthropic' and not ANTHROPIC_AVAILABLE:
        return fail("anthropic library not installed\n  Install: pip install anthropic")

    if not config.api_key:
        env_var = {
            'openai': 'OPENAI_API_KEY',
            'azure': 'AZURE_OPENAI_API_KEY',
            'anthropic': 'ANTHROPIC_API_KEY',
        }.get(provider, 'API key')
        return fail(f"{provider} API key not set\n  Set: export {env_var}=your_key")

    try:
        if provider == 'azure':
            if not config.endpoint:
                return fail("Azure OpenAI endpoint not set\n  Set: export AZURE_OPENAI_ENDPOINT=https://<resource>.openai.azure.com")
            sdk_client = openai.AzureOpenAI(
                api_key=config.api_key,
                azure_endpoint=config.endpoint,
                api_version=config.api_version,
                **_sdk_options(config)
            )
            client: ChatClient = OpenAIChatClient(
                sdk_client, config.model, config.max_tokens,
                config.temperature, config.reasoning_effort
            )
        elif provider == 'openai':
            kwargs = _sdk_options(config)
            if config.endpoint:
                kwargs['base_url'] = config.endpoint
            sdk_client = openai.OpenAI(api_key=config.api_key, **kwargs)
            client = OpenAIChatClient(
                sdk_client, config.model, config.max_tokens,
                config.temperature, config.reasoning_effort
            )
        else:
            sdk_client = anthropic.Anthropic(api_key=config.api_key, **_sdk_options(config))
            client = AnthropicChatClient(sdk_client, config.model, config.max_tokens, config.temperature)
    except ConfigError:
        raise
    except Exception as e:
        logger.error(f"Failed to initialize {provider} client: {e}")
        return fail(f"{provider} client initialization failed: {e}")

    message = f"✓ {provider} client ready (model: {config.model})"
    logger.info(message)
    if verbose:
        print(message)
    return client, True, message


def check_connection(client: ChatClient) -> Tuple[bool, str]:
    """
    Send a short greeting prompt to verify credentials and model name.

    Returns:
        Tuple of (ok, reply text or error description)
    """
    try:
        reply = client.complete(
            'You are a connectivity check.',
            CONNECTION_TEST_PROMPT,
            json_mode=False
        )
    except Exception as e:
        logger.warning(f"Connection check failed: {e}")
        return False, str(e)

    if not reply.strip():
        return False, 'Empty reply from model'
    return True, reply.strip()
