"""
TracePlan Configuration

Generator settings loaded from a YAML file and overlaid with environment
variables. API keys come from the environment only.
"""

import logging
import os
import re
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .common.ai_utils import model_family
from .common.utils import get_api_key_from_env
from .errors import ConfigError

logger = logging.getLogger(__name__)

PROVIDERS = ('openai', 'azure', 'anthropic')

ARTIFACT_TYPES = ('testPlan', 'testScenario', 'testCases', 'code')


DEFAULT_SIMILARITY_THRESHOLD = 0.72

DEFAULT_STOPWORDS = [
    'the', 'a', 'an', 'and', 'of', 'to', 'for', 'in', 'on', 'by',
    'with', 'is', 'are', 'or', 'as', 'at', 'from',
]

# Regex (applied to lower-cased text) -> replacement
DEFAULT_ALIASES = {
    r'\bauth\b': ' authentication ',
    r'\bauthentication\b': ' authentication ',
    r'\bsvc\b': ' service ',
    r'\bservice\b': ' service ',
    r'\bperf\b': ' performance ',
    r'\bperformance\b': ' performance ',
    r'\bdb\b': ' database ',
    r'\bdatabase\b': ' database ',
    r'\biam\b': ' identity access management ',
    r'\bidentity\b': ' identity ',
    r'\bapi\b': ' api ',
    r'\bbug\b': ' defect ',
    r'\bdefect\b': ' defect ',
    r'\bissue\b': ' defect ',
    r'\blog\b': ' report ',
    r'\breport\b': ' report ',
}


@dataclass
class MergeSettings:
    """Tunable data for fuzzy key grouping in the plan merger."""

    similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD
    aliases: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_ALIASES))
    stopwords: List[str] = field(default_factory=lambda: list(DEFAULT_STOPWORDS))

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'MergeSettings':
        """Create settings from a config mapping; omitted keys keep defaults."""
        data = data or {}
        settings = cls()

        if 'similarity_threshold' in data:
            try:
                threshold = float(data['similarity_threshold'])
            except (TypeError, ValueError):
                raise ConfigError(f"merge.similarity_threshold must be a number, got {data['similarity_threshold']!r}")
            if not 0.0 <= threshold <= 1.0:
                raise ConfigError(f"merge.similarity_threshold must be between 0 and 1, got {threshold}")
            settings.similarity_threshold = threshold

        if 'aliases' in data:
            if not isinstance(data['aliases'], dict):
                raise ConfigError("merge.aliases must be a mapping of pattern -> replacement")
            for pattern in data['aliases']:
                try:
                    re.compile(pattern)
                except re.error as e:
                    raise ConfigError(f"Invalid alias pattern {pattern!r}: {e}")
            settings.aliases = {str(k): str(v) for k, v in data['aliases'].items()}

        if 'stopwords' in data:
            if not isinstance(data['stopwords'], list):
                raise ConfigError("merge.stopwords must be a list")
            settings.stopwords = [str(w).lower() for w in data['stopwords']]

        return settings


@dataclass
class GeneratorConfig:
    """
    Provider and batching configuration.

    Example YAML:

        provider: azure
        model: o3-mini
        endpoint: https://my-resource.openai.azure.com
        api_version: 2024-10-21
        batch_size: 4
        merge:
          similarity_threshold: 0.75
    """

    provider: str = 'openai'
    model: str = 'gpt-4o'
    api_key: Optional[str] = field(default=None, repr=False)
    endpoint: Optional[str] = None
    api_version: str = '2024-10-21'
    max_tokens: int = 16384
    batch_size: int = 5
    tokens_per_endpoint: int = 2048
    temperature: float = 0.3
    reasoning_effort: str = 'low'
    request_timeout: Optional[float] = None
    max_retries: int = 0
    merge: MergeSettings = field(default_factory=MergeSettings)

    def __post_init__(self):
        self.validate()

    @property
    def family(self) -> str:
        return model_family(self.model)

    def validate(self) -> None:
        """Raise ConfigError for values the pipeline cannot work with."""
        if self.provider not in PROVIDERS:
            raise ConfigError(f"Unknown provider {self.provider!r}. Expected one of: {', '.join(PROVIDERS)}")
        if not self.model:
            raise ConfigError("model must not be empty")
        for name in ('max_tokens', 'batch_size', 'tokens_per_endpoint'):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value < 1:
                raise ConfigError(f"{name} must be a positive integer, got {value!r}")
        if not isinstance(self.max_retries, int) or self.max_retries < 0:
            raise ConfigError(f"max_retries must be a non-negative integer, got {self.max_retries!r}")
        if self.request_timeout is not None and self.request_timeout <= 0:
            raise ConfigError(f"request_timeout must be positive, got {self.request_timeout!r}")

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'GeneratorConfig':
        """Create config from a mapping, ignoring unknown keys."""
        data = dict(data or {})
        known = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in data.items() if k in known and k != 'merge'}

        try:
            for name in ('max_tokens', 'batch_size', 'tokens_per_endpoint', 'max_retries'):
                if name in kwargs:
                    kwargs[name] = int(kwargs[name])
            for name in ('temperature', 'request_timeout'):
                if kwargs.get(name) is not None:
                    kwargs[name] = float(kwargs[name])
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid numeric config value: {e}")

        kwargs['merge'] = MergeSettings.from_dict(data.get('merge'))
        return cls(**kwargs)

    @classmethod
    def from_yaml(cls, yaml_path: str) -> 'GeneratorConfig':
        """Load config from a YAML file."""
        path = Path(yaml_path)
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")

        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}")

        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")
        if data.pop('api_key', None):
            logger.warning(f"Ignoring api_key in {path}; set it through the environment instead")
        return cls.from_dict(data)

    @classmethod
    def from_env(
        cls,
        yaml_path: Optional[str] = None,
        environ: Optional[Dict[str, str]] = None
    ) -> 'GeneratorConfig':
        """
        Load config from an optional YAML file, then apply environment overrides.

        Args:
            yaml_path: Optional YAML config file
            environ: Environment mapping (defaults to os.environ)

        Returns:
            GeneratorConfig with api_key resolved from the provider's env var
        """
        env = os.environ if environ is None else environ
        data: Dict[str, Any] = {}

        if yaml_path:
            base = cls.from_yaml(yaml_path)
            data = {f.name: getattr(base, f.name) for f in fields(cls) if f.name != 'merge'}
            merge = base.merge
        else:
            merge = None

        overrides = {
            'TRACEPLAN_PROVIDER': 'provider',
            'TRACEPLAN_MODEL': 'model',
            'TRACEPLAN_MAX_TOKENS': 'max_tokens',
            'TRACEPLAN_BATCH_SIZE': 'batch_size',
            'AZURE_OPENAI_API_VERSION': 'api_version',
        }
        for env_var, name in overrides.items():
            if env.get(env_var):
                data[name] = env[env_var]

        provider = data.get('provider', 'openai')
        if not data.get('endpoint'):
            endpoint_var = 'AZURE_OPENAI_ENDPOINT' if provider == 'azure' else 'OPENAI_BASE_URL'
            if provider != 'anthropic' and env.get(endpoint_var):
                data['endpoint'] = env[endpoint_var]

        # SECURITY: API keys come from the environment, never from the config file
        data['api_key'] = get_api_key_from_env(provider, environ=env)

        config = cls.from_dict(data)
        if merge is not None:
            config.merge = merge
        return config
