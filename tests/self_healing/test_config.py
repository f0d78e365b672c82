"""Unit tests for environment settings and the layered configuration loader."""

import pytest
import yaml
from pydantic import ValidationError

from self_healing.core.config import Settings
from self_healing.core.config_loader import (
    ConfigurationError,
    SelfHealingConfigLoader,
    settings_to_dict
)
from self_healing.core.models import HealingConfiguration

ENV_VARS = (
    "USE_SMART_LOCATOR", "RUN_WITH_SMART_LOCATOR", "OPENAI_API_KEY", "OPENAI_MODEL",
    "CACHE_PATH", "CACHE_EXPIRATION_DAYS", "MAX_RETRIES", "ELEMENT_TIMEOUT_MS",
    "RESOLUTION_TIMEOUT_MS", "ENABLE_LOGGING", "LOG_LEVEL", "LOG_DIR", "SELF_HEALING_CONFIG_PATH"
)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture
def config_path(tmp_path):
    return tmp_path / "config" / "self_healing.yaml"


def write_yaml(path, data):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(data), encoding="utf-8")


class TestSettings:
    """Test environment settings."""

    def test_defaults(self):
        settings = Settings()

        assert settings.USE_SMART_LOCATOR is False
        assert settings.RUN_WITH_SMART_LOCATOR is False
        assert settings.OPENAI_MODEL == "gpt-4o-mini"
        assert settings.OPENAI_API_KEY is None
        assert settings.CACHE_PATH == "cache/locator_cache.json"
        assert settings.CACHE_EXPIRATION_DAYS == 2
        assert settings.MAX_RETRIES == 3
        assert settings.ELEMENT_TIMEOUT_MS == 5000
        assert settings.RESOLUTION_TIMEOUT_MS == 30000
        assert settings.LOG_LEVEL == "INFO"

    def test_environment_overrides(self, clean_environment):
        clean_environment.setenv("USE_SMART_LOCATOR", "true")
        clean_environment.setenv("RUN_WITH_SMART_LOCATOR", "1")
        clean_environment.setenv("OPENAI_API_KEY", "sk-test")
        clean_environment.setenv("LOG_LEVEL", "warn")

        settings = Settings()

        assert settings.USE_SMART_LOCATOR is True
        assert settings.RUN_WITH_SMART_LOCATOR is True
        assert settings.OPENAI_API_KEY == "sk-test"
        assert settings.LOG_LEVEL == "WARNING"

    def test_dotenv_file(self, tmp_path):
        (tmp_path / ".env").write_text("OPENAI_MODEL=gpt-4o\nMAX_RETRIES=5\n", encoding="utf-8")

        settings = Settings()

        assert settings.OPENAI_MODEL == "gpt-4o"
        assert settings.MAX_RETRIES == 5

    @pytest.mark.parametrize("name, value", [
        ("CACHE_EXPIRATION_DAYS", "0"),
        ("MAX_RETRIES", "11"),
        ("ELEMENT_TIMEOUT_MS", "-1"),
        ("LOG_LEVEL", "verbose"),
    ])
    def test_invalid_values(self, clean_environment, name, value):
        clean_environment.setenv(name, value)
        with pytest.raises(ValidationError):
            Settings()


class TestSelfHealingConfigLoader:
    """Test configuration loading, validation and saving."""

    def test_environment_only_when_file_missing(self, config_path, clean_environment):
        clean_environment.setenv("USE_SMART_LOCATOR", "true")
        clean_environment.setenv("OPENAI_API_KEY", "sk-test")

        config = SelfHealingConfigLoader(str(config_path)).load_config()

        assert config.use_smart_locator is True
        assert config.api_key == "sk-test"
        assert config.element_timeout_ms == 5000
        assert config.evict_stale_entries is False

    def test_file_overrides_environment(self, config_path, clean_environment):
        clean_environment.setenv("MAX_RETRIES", "5")
        write_yaml(config_path, {"self_healing": {
            "max_retries": 2,
            "evict_stale_entries": True,
            "log_level": "debug",
            "unknown_option": "ignored"
        }})

        config = SelfHealingConfigLoader(str(config_path)).load_config()

        assert config.max_retries == 2
        assert config.evict_stale_entries is True
        assert config.log_level == "DEBUG"

    def test_config_path_from_settings(self, tmp_path, clean_environment):
        path = tmp_path / "custom.yaml"
        write_yaml(path, {"self_healing": {"max_retries": 7}})
        clean_environment.setenv("SELF_HEALING_CONFIG_PATH", str(path))

        assert SelfHealingConfigLoader().load_config().max_retries == 7

    @pytest.mark.parametrize("overrides", [
        {"cache_expiration_days": 0},
        {"max_retries": 11},
        {"element_timeout_ms": 0},
        {"element_timeout_ms": 10000, "resolution_timeout_ms": 5000},
        {"inference_temperature": 3.0},
        {"inference_max_tokens": 0},
        {"log_level": "TRACE"},
        {"cache_path": ""},
    ])
    def test_invalid_file_values(self, config_path, overrides):
        write_yaml(config_path, {"self_healing": overrides})

        with pytest.raises(ConfigurationError):
            SelfHealingConfigLoader(str(config_path)).load_config()

    def test_invalid_yaml(self, config_path):
        config_path.parent.mkdir(parents=True)
        config_path.write_text("self_healing: [unclosed", encoding="utf-8")

        with pytest.raises(ConfigurationError):
            SelfHealingConfigLoader(str(config_path)).load_config()

    def test_non_mapping_section(self, config_path):
        write_yaml(config_path, {"self_healing": ["a", "b"]})

        with pytest.raises(ConfigurationError):
            SelfHealingConfigLoader(str(config_path)).load_config()

    def test_config_cached_until_file_changes(self, config_path):
        write_yaml(config_path, {"self_healing": {"max_retries": 2}})
        loader = SelfHealingConfigLoader(str(config_path))

        first = loader.load_config()
        assert loader.load_config() is first

        assert loader.load_config(force_reload=True) is not first

    def test_update_config(self, config_path):
        loader = SelfHealingConfigLoader(str(config_path))

        updated = loader.update_config(run_with_smart_locator=True, max_retries=4)

        assert updated.run_with_smart_locator is True
        assert updated.max_retries == 4

        with pytest.raises(ConfigurationError):
            loader.update_config(not_a_setting=True)
        with pytest.raises(ConfigurationError):
            loader.update_config(max_retries=0)

    def test_save_config_omits_api_key(self, config_path):
        loader = SelfHealingConfigLoader(str(config_path))
        config = HealingConfiguration(api_key="sk-secret", max_retries=4, cache_path="tmp/cache.json")

        loader.save_config(config)

        saved = yaml.safe_load(config_path.read_text(encoding="utf-8"))
        assert saved["self_healing"]["max_retries"] == 4
        assert saved["self_healing"]["cache_path"] == "tmp/cache.json"
        assert "api_key" not in saved["self_healing"]
        assert "sk-secret" not in config_path.read_text(encoding="utf-8")

        reloaded = SelfHealingConfigLoader(str(config_path)).load_config()
        assert reloaded.max_retries == 4

    def test_settings_to_dict_matches_configuration_fields(self):
        data = settings_to_dict(Settings())

        assert set(data) <= set(HealingConfiguration.__dataclass_fields__)
        assert data["model"] == "gpt-4o-mini"
