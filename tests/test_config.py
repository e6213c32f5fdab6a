"""Tests for configuration loading."""

import json

from nanogate.bus.queue import OverflowPolicy
from nanogate.config.loader import CONFIG_ENV_VAR, get_config_path, load_config, save_config
from nanogate.config.schema import Config


class TestConfigDefaults:
    def test_defaults(self):
        config = Config()
        assert config.agents.defaults.model == "glm-4-flash"
        assert config.agents.defaults.max_iterations == 10
        assert config.agents.defaults.temperature == 0.7
        assert config.tools.exec.timeout == 60
        assert config.tools.exec.blocked_commands == ["rm -rf", "format", "dd", "mkfs"]
        assert config.tools.file.max_file_size == 1024 * 1024
        assert config.bus.overflow is OverflowPolicy.DROP_NEW
        assert config.gateway.port == 18790

    def test_missing_file(self, tmp_path):
        assert load_config(tmp_path / "missing.json") == Config()


class TestConfigFile:
    def test_camel_case_keys(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({
            "agents": {"defaults": {"model": "deepseek-chat", "maxIterations": 3}},
            "providers": {"deepseek": {"apiKey": "sk-test"}},
            "tools": {"restrictToWorkspace": False, "exec": {"blockedCommands": ["shutdown"]}},
            "bus": {"bufferSize": 8, "overflow": "drop_oldest"},
            "channels": {"feishu": {"enabled": True, "allowFrom": ["ou_1"], "appId": "cli_x"}},
        }), encoding="utf-8")

        config = load_config(path)

        assert config.agents.defaults.model == "deepseek-chat"
        assert config.agents.defaults.max_iterations == 3
        assert config.get_provider("DeepSeek").api_key == "sk-test"
        assert config.tools.restrict_to_workspace is False
        assert config.tools.exec.blocked_commands == ["shutdown"]
        assert config.bus.overflow is OverflowPolicy.DROP_OLDEST
        feishu = config.channels["feishu"]
        assert feishu.enabled is True
        assert feishu.allow_from == ["ou_1"]
        assert feishu.model_extra["appId"] == "cli_x"

    def test_save_writes_camel_case(self, tmp_path):
        config = Config()
        config.agents.defaults.max_history = 7
        path = save_config(config, tmp_path / "nested" / "config.json")

        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["agents"]["defaults"]["maxHistory"] == 7
        assert "restrictToWorkspace" in data["tools"]
        assert load_config(path).agents.defaults.max_history == 7

    def test_invalid_file_falls_back_to_defaults(self, tmp_path):
        broken = tmp_path / "broken.json"
        broken.write_text("{not json", encoding="utf-8")
        assert load_config(broken) == Config()

        invalid = tmp_path / "invalid.json"
        invalid.write_text(json.dumps({"agents": {"defaults": {"maxIterations": 0}}}), encoding="utf-8")
        assert load_config(invalid) == Config()

    def test_env_var_path(self, tmp_path, monkeypatch):
        path = tmp_path / "env.json"
        monkeypatch.setenv(CONFIG_ENV_VAR, str(path))
        assert get_config_path() == path
        save_config(Config(gateway={"port": 9000}))
        assert load_config().gateway.port == 9000
