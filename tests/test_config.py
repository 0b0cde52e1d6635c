import os
import tempfile

import yaml

from clublog.config import Config


class TestConfig:
    def test_default_config(self, monkeypatch):
        """Verify defaults are loaded when no file is given."""
        monkeypatch.delenv("APP_ENV", raising=False)
        config = Config()
        assert config["server"]["port"] == 5000
        assert config["server"]["debug"] is False
        assert config["logger"]["max_logs"] == 1000
        assert config["logger"]["storage_key"] == "app_logs"
        assert config["logger"]["development"] is False
        assert config["storage"]["path"] == "data/app_logs.json"
        assert config["navigation"]["login_path"] == "/volunteer/login"
        assert config["navigation"]["redirect_delay_seconds"] == 2
        assert config["notifications"]["max_items"] == 50

    def test_load_from_yaml(self):
        """Write a temp YAML with overrides, verify merge."""
        override = {
            "logger": {"max_logs": 50},
            "navigation": {"redirect_delay_seconds": 5},
        }
        with tempfile.NamedTemporaryFile(
            mode="w", suffix=".yaml", delete=False
        ) as f:
            yaml.dump(override, f)
            temp_path = f.name

        try:
            cfg = Config(temp_path)
            assert cfg["logger"]["max_logs"] == 50
            assert cfg["logger"]["storage_key"] == "app_logs"  # default preserved
            assert cfg["navigation"]["redirect_delay_seconds"] == 5
            assert cfg["navigation"]["login_path"] == "/volunteer/login"
        finally:
            os.unlink(temp_path)

    def test_missing_file_uses_defaults(self):
        cfg = Config("/nonexistent/path/config.yaml")
        assert cfg["logger"]["max_logs"] == 1000

    def test_invalid_yaml_uses_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("logger: [unclosed")
        cfg = Config(str(path))
        assert cfg["logger"]["max_logs"] == 1000

    def test_deep_merge(self):
        base = {"logger": {"max_logs": 1000, "development": False}}
        override = {"logger": {"development": True}}
        result = Config._deep_merge(base, override)
        assert result["logger"]["development"] is True
        assert result["logger"]["max_logs"] == 1000

    def test_app_env_turns_on_development(self, monkeypatch):
        monkeypatch.setenv("APP_ENV", "development")
        assert Config().development is True

    def test_app_env_production(self, monkeypatch):
        monkeypatch.setenv("APP_ENV", "production")
        assert Config().development is False

    def test_get_and_contains(self, config):
        assert config.get("nonexistent", "fallback") == "fallback"
        assert "logger" in config
        assert "nonexistent" not in config
