"""Tests for configuration management."""

from ccmonitor.config import (
    CorrelationConfig,
    DiscoveryConfig,
    MonitorConfig,
    ServerConfig,
    load_config,
)


class TestMonitorConfig:
    def test_defaults(self):
        config = MonitorConfig()
        assert config.server.port == 8737
        assert config.server.bind == "127.0.0.1"
        assert config.discovery.process_name == "claude"
        assert config.discovery.scan_interval_seconds == 30.0
        assert config.correlation.working_directory_confidence == 0.95
        assert config.correlation.fallback_confidence == 0.1
        assert config.notifications.macos is True
        assert config.pricing == {}

    def test_custom_values(self):
        config = MonitorConfig(
            server=ServerConfig(port=9000),
            discovery=DiscoveryConfig(require_terminal=False),
            correlation=CorrelationConfig(label_weight=0.5),
        )
        assert config.server.port == 9000
        assert config.discovery.require_terminal is False
        assert config.correlation.label_weight == 0.5

    def test_pricing_overrides(self):
        config = MonitorConfig(pricing={"my-model": {"input": 1.0, "output": 2.0}})
        assert config.pricing["my-model"].output == 2.0

    def test_serialization_roundtrip(self):
        config = MonitorConfig()
        restored = MonitorConfig(**config.model_dump())
        assert restored.server.port == config.server.port
        assert restored.transcripts.claude_dir == config.transcripts.claude_dir

    def test_transcript_paths(self, tmp_path):
        config = MonitorConfig(transcripts={"claude_dir": str(tmp_path)})
        assert config.transcripts.projects_dir == tmp_path / "projects"
        assert config.transcripts.settings_file == tmp_path / "settings.json"


class TestLoadConfig:
    def test_missing_file_gives_defaults(self, tmp_path):
        config = load_config(tmp_path / "missing.yaml")
        assert config.server.port == 8737

    def test_partial_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("server:\n  port: 9999\ndiscovery:\n  scan_interval_seconds: 10\n")
        config = load_config(path)
        assert config.server.port == 9999
        assert config.discovery.scan_interval_seconds == 10
        assert config.server.bind == "127.0.0.1"

    def test_empty_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert load_config(path).server.port == 8737
