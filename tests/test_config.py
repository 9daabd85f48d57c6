"""
Tests for generator configuration.

Tests defaults, validation, YAML loading and environment overrides.
"""

import pytest
import yaml

from traceplan.config import DEFAULT_SIMILARITY_THRESHOLD, GeneratorConfig, MergeSettings
from traceplan.errors import ConfigError


@pytest.fixture
def config_file(tmp_path):
    """Write a YAML config and return its path."""
    def _write(data):
        path = tmp_path / 'traceplan.yaml'
        path.write_text(yaml.safe_dump(data), encoding='utf-8')
        return str(path)
    return _write


class TestGeneratorConfig:
    """Test suite for GeneratorConfig defaults and validation."""

    def test_defaults(self):
        """Test default provider, model and batching."""
        config = GeneratorConfig()

        assert config.provider == 'openai'
        assert config.model == 'gpt-4o'
        assert config.family == 'chat'
        assert config.max_retries == 0
        assert config.api_key is None
        assert config.merge.similarity_threshold == DEFAULT_SIMILARITY_THRESHOLD

    def test_api_key_hidden_from_repr(self):
        """Test the API key never shows up in repr()."""
        assert 'sk-secret' not in repr(GeneratorConfig(api_key='sk-secret'))

    def test_reasoning_family(self):
        """Test o-series models are classified as reasoning models."""
        assert GeneratorConfig(model='o3-mini').family == 'reasoning'

    @pytest.mark.parametrize('kwargs', [
        {'provider': 'gemini'},
        {'model': ''},
        {'batch_size': 0},
        {'max_tokens': -5},
        {'tokens_per_endpoint': 0},
        {'max_retries': -1},
        {'request_timeout': 0},
    ])
    def test_invalid_values(self, kwargs):
        """Test unusable values raise ConfigError."""
        with pytest.raises(ConfigError):
            GeneratorConfig(**kwargs)

    def test_from_dict_coerces_numbers(self):
        """Test numeric strings are converted and unknown keys ignored."""
        config = GeneratorConfig.from_dict({
            'batch_size': '8',
            'max_tokens': '4000',
            'request_timeout': '30',
            'colour': 'blue',
        })

        assert config.batch_size == 8
        assert config.max_tokens == 4000
        assert config.request_timeout == 30.0

    def test_from_dict_bad_number(self):
        """Test non-numeric values raise ConfigError."""
        with pytest.raises(ConfigError, match='Invalid numeric'):
            GeneratorConfig.from_dict({'batch_size': 'many'})


class TestMergeSettings:
    """Test suite for MergeSettings.from_dict."""

    def test_defaults_kept(self):
        """Test omitted keys keep their defaults."""
        settings = MergeSettings.from_dict({'similarity_threshold': 0.8})

        assert settings.similarity_threshold == 0.8
        assert r'\bauth\b' in settings.aliases
        assert 'the' in settings.stopwords

    def test_threshold_range(self):
        """Test thresholds outside [0, 1] are rejected."""
        with pytest.raises(ConfigError):
            MergeSettings.from_dict({'similarity_threshold': 1.5})
        with pytest.raises(ConfigError):
            MergeSettings.from_dict({'similarity_threshold': 'high'})

    def test_invalid_alias_pattern(self):
        """Test alias patterns must compile."""
        with pytest.raises(ConfigError, match='Invalid alias pattern'):
            MergeSettings.from_dict({'aliases': {'(unclosed': 'x'}})

    def test_stopwords(self):
        """Test stopwords are lower-cased and must be a list."""
        assert MergeSettings.from_dict({'stopwords': ['The', 'API']}).stopwords == ['the', 'api']
        with pytest.raises(ConfigError):
            MergeSettings.from_dict({'stopwords': 'the'})


class TestLoading:
    """Test suite for YAML and environment loading."""

    def test_from_yaml(self, config_file):
        """Test YAML values and merge settings are loaded."""
        path = config_file({
            'provider': 'azure',
            'model': 'o3-mini',
            'endpoint': 'https://my-resource.openai.azure.com',
            'batch_size': 3,
            'merge': {'similarity_threshold': 0.8},
        })

        config = GeneratorConfig.from_yaml(path)

        assert config.provider == 'azure'
        assert config.batch_size == 3
        assert config.merge.similarity_threshold == 0.8

    def test_yaml_api_key_ignored(self, config_file):
        """Test API keys in config files are never used."""
        config = GeneratorConfig.from_yaml(config_file({'api_key': 'sk-in-file'}))
        assert config.api_key is None

    def test_missing_yaml(self, tmp_path):
        """Test a missing file raises ConfigError."""
        with pytest.raises(ConfigError, match='not found'):
            GeneratorConfig.from_yaml(str(tmp_path / 'missing.yaml'))

    def test_yaml_not_a_mapping(self, tmp_path):
        """Test a YAML list is rejected."""
        path = tmp_path / 'list.yaml'
        path.write_text('- a\n- b\n', encoding='utf-8')

        with pytest.raises(ConfigError, match='mapping'):
            GeneratorConfig.from_yaml(str(path))

    def test_from_env(self):
        """Test environment overrides and API key lookup."""
        config = GeneratorConfig.from_env(environ={
            'TRACEPLAN_MODEL': 'o3-mini',
            'TRACEPLAN_BATCH_SIZE': '2',
            'OPENAI_API_KEY': 'sk-env',
        })

        assert config.model == 'o3-mini'
        assert config.family == 'reasoning'
        assert config.batch_size == 2
        assert config.api_key == 'sk-env'

    def test_from_env_overrides_yaml(self, config_file):
        """Test environment variables win over the YAML file."""
        path = config_file({
            'provider': 'azure',
            'model': 'gpt-4o',
            'batch_size': 6,
            'merge': {'similarity_threshold': 0.9},
        })

        config = GeneratorConfig.from_env(path, environ={
            'TRACEPLAN_BATCH_SIZE': '3',
            'AZURE_OPENAI_API_KEY': 'az-key',
            'AZURE_OPENAI_ENDPOINT': 'https://res.openai.azure.com',
            'OPENAI_API_KEY': 'sk-wrong-provider',
        })

        assert config.provider == 'azure'
        assert config.batch_size == 3
        assert config.api_key == 'az-key'
        assert config.endpoint == 'https://res.openai.azure.com'
        assert config.merge.similarity_threshold == 0.9

    def test_anthropic_ignores_openai_base_url(self):
        """Test OPENAI_BASE_URL is not applied to Anthropic."""
        config = GeneratorConfig.from_env(environ={
            'TRACEPLAN_PROVIDER': 'anthropic',
            'OPENAI_BASE_URL': 'https://proxy.example.com',
            'ANTHROPIC_API_KEY': 'sk-ant',
        })

        assert config.endpoint is None
        assert config.api_key == 'sk-ant'
