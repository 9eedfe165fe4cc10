"""Unit tests for configuration loading."""

import pytest

from livedictate.config import CoordinatorSettings, LiveDictateConfig
from livedictate.storage import StaticUserDataStore


CONFIG_YAML = """
transcription:
  backend: openai
  max_retries: 3
storage:
  data_directory: data
logging:
  file_path: logs/livedictate.log
coordinator:
  backlog_ceiling: 8
  silence_floor_rms: 0.01
users:
  alice:
    default_language: de-DE
    dictionary:
      - {phrase: "kube cuddle", canonical: "kubectl", priority: 90}
      - {phrase: "Grafana", priority: 40}
"""


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "livedictate.yaml"
    path.write_text(CONFIG_YAML, encoding="utf-8")
    return path


@pytest.mark.unit
class TestLiveDictateConfig:

    def test_dot_path_get(self, config_file):
        config = LiveDictateConfig(str(config_file))

        assert config.get('transcription.backend') == 'openai'
        assert config.get('transcription.max_retries') == 3
        assert config.get('transcription.missing', 'fallback') == 'fallback'
        assert config.get('nope.nested.key') is None

    def test_relative_paths_resolved_against_config_dir(self, config_file, tmp_path):
        config = LiveDictateConfig(str(config_file))

        assert config.get('storage.data_directory') == str(tmp_path / "data")
        assert config.get('logging.file_path') == str(tmp_path / "logs" / "livedictate.log")
        assert config.get_data_directory() == str(tmp_path / "data")

    def test_set_creates_sections(self, config_file):
        config = LiveDictateConfig(str(config_file))

        config.set('openai.model', 'whisper-1')
        assert config.get('openai.model') == 'whisper-1'

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            LiveDictateConfig(str(tmp_path / "absent.yaml"))

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        with pytest.raises(ValueError):
            LiveDictateConfig(str(path))

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("coordinator: [unclosed", encoding="utf-8")
        with pytest.raises(ValueError):
            LiveDictateConfig(str(path))

    def test_openai_key_from_environment(self, config_file, monkeypatch):
        config = LiveDictateConfig(str(config_file))

        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        with pytest.raises(ValueError):
            config.get_openai_api_key()

        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        assert config.get_openai_api_key() == "sk-test"

    def test_coordinator_settings(self, config_file):
        settings = CoordinatorSettings.from_config(LiveDictateConfig(str(config_file)))

        assert settings.backlog_ceiling == 8
        assert settings.silence_floor_rms == 0.01
        assert settings.flush_interval_seconds == 1.0
        assert settings.prompt_budget_chars == 224
        assert settings.max_recording_ms == 900000

    @pytest.mark.asyncio
    async def test_user_data_from_config(self, config_file):
        user_data = StaticUserDataStore.from_config(LiveDictateConfig(str(config_file)))

        settings = await user_data.get_settings("alice")
        dictionary = await user_data.list_dictionary("alice")
        assert settings.default_language == "de-DE"
        assert settings.model_identifier == "whisper-1"
        assert [entry.term for entry in dictionary] == ["kubectl", "Grafana"]
        assert (await user_data.get_settings("unknown")).default_language == "en-US"
