"""Unit tests for ConfigService: config.json, focus settings and credentials."""

from __future__ import annotations

import json
import stat
import sys

import pytest

from timelens_cli.models.config_models import AppConfig
from timelens_cli.models.focus.exceptions import PersistenceError
from timelens_cli.models.focus.settings import FocusSettings


class TestLoadConfig:
    def test_first_run_writes_defaults(self, tmp_config):
        config = tmp_config.load_config()
        assert config == AppConfig()
        assert tmp_config.config_path.exists()

    def test_reads_existing_file(self, tmp_config):
        tmp_config.config_path.write_text(
            json.dumps({"api": {"endpoint": "https://api.example.com/"}, "focus": {"focusDuration": 50}})
        )
        config = tmp_config.load_config()
        assert config.api.endpoint == "https://api.example.com"
        assert config.focus.focus_duration == 50

    def test_corrupt_file_raises_persistence_error(self, tmp_config):
        tmp_config.config_path.write_text("{not json")
        with pytest.raises(PersistenceError):
            tmp_config.load_config()

    def test_out_of_range_settings_raise_persistence_error(self, tmp_config):
        tmp_config.config_path.write_text(json.dumps({"focus": {"focus_duration": 0}}))
        with pytest.raises(PersistenceError):
            tmp_config.load_config()

    def test_session_db_lives_in_data_dir(self, tmp_config):
        assert tmp_config.session_db_path.parent == tmp_config.data_dir

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")
    def test_config_file_is_private(self, tmp_config):
        tmp_config.load_config()
        assert stat.S_IMODE(tmp_config.config_path.stat().st_mode) == 0o600


class TestSettingsPersistence:
    def test_save_settings_survives_reload(self, tmp_config):
        tmp_config.save_settings(FocusSettings(focus_duration=45, auto_start_breaks=True))

        tmp_config._config = None
        settings = tmp_config.load_settings()
        assert settings.focus_duration == 45
        assert settings.auto_start_breaks is True

    def test_reset_config(self, tmp_config):
        tmp_config.save_settings(FocusSettings(focus_duration=45))
        assert tmp_config.reset_config().focus == FocusSettings()


class TestCredentials:
    def test_no_credentials_by_default(self, tmp_config):
        assert tmp_config.load_credentials() is None

    def test_save_and_clear(self, tmp_config):
        tmp_config.save_credentials("secret")
        assert tmp_config.load_credentials() == {"token": "secret"}
        tmp_config.clear_credentials()
        assert tmp_config.load_credentials() is None

    def test_unreadable_credentials_are_ignored(self, tmp_config):
        tmp_config.credentials_path.write_text("garbage")
        assert tmp_config.load_credentials() is None
