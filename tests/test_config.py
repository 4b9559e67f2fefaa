"""Tests for the configuration file support."""

import pytest

from prt_guard.config import load_config, Config, ConfigError
from prt_guard.rules.guards import DEFAULT_GUARD_PATTERNS
from prt_guard.rules.untrusted_refs import UNTRUSTED_REFS


# ---------------------------------------------------------------------------
# load_config with no file
# ---------------------------------------------------------------------------

class TestConfigDefaults:
    def test_returns_defaults_when_no_file(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        config = load_config()
        assert config.trigger == "pull_request_target"
        assert config.checkout_action == "actions/checkout"
        assert config.untrusted_refs == list(UNTRUSTED_REFS)
        assert config.exclude == []

    def test_returns_defaults_for_invalid_yaml(self, tmp_path):
        cfg = tmp_path / ".prt-guard.yml"
        cfg.write_text("just a string")
        config = load_config(config_path=str(cfg))
        assert config == Config()

    def test_default_settings_match_detector_defaults(self):
        settings = Config().rule_settings()
        assert settings.untrusted_refs == UNTRUSTED_REFS
        assert [p.pattern for p in settings.guard_patterns] == [p.pattern for p in DEFAULT_GUARD_PATTERNS]


# ---------------------------------------------------------------------------
# load_config with explicit path
# ---------------------------------------------------------------------------

class TestConfigExplicitPath:
    def test_loads_trigger_and_action(self, tmp_path):
        cfg = tmp_path / ".prt-guard.yml"
        cfg.write_text("trigger: workflow_run\ncheckout_action: my-org/checkout\n")
        config = load_config(config_path=str(cfg))
        assert config.trigger == "workflow_run"
        assert config.checkout_action == "my-org/checkout"

    def test_loads_untrusted_refs(self, tmp_path):
        cfg = tmp_path / ".prt-guard.yml"
        cfg.write_text("untrusted_refs:\n  - github.head_ref\n  - env.GITHUB_HEAD_REF\n")
        config = load_config(config_path=str(cfg))
        assert config.untrusted_refs == ["github.head_ref", "env.GITHUB_HEAD_REF"]

    def test_loads_guard_patterns(self, tmp_path):
        cfg = tmp_path / ".prt-guard.yml"
        cfg.write_text("guard_patterns:\n  - 'github\\.repository_owner\\s*=='\n")
        config = load_config(config_path=str(cfg))
        settings = config.rule_settings()
        assert len(settings.guard_patterns) == 1
        assert settings.guard_patterns[0].search("GITHUB.repository_owner == 'me'")

    def test_loads_exclude(self, tmp_path):
        cfg = tmp_path / ".prt-guard.yml"
        cfg.write_text("exclude:\n  - '**/test-*.yml'\n")
        config = load_config(config_path=str(cfg))
        assert config.exclude == ["**/test-*.yml"]

    def test_missing_explicit_path_returns_defaults(self, tmp_path):
        config = load_config(config_path=str(tmp_path / "nonexistent.yml"))
        assert config == Config()

    def test_wrong_type_raises(self, tmp_path):
        cfg = tmp_path / ".prt-guard.yml"
        cfg.write_text("untrusted_refs: github.head_ref\n")
        with pytest.raises(ConfigError, match="untrusted_refs"):
            load_config(config_path=str(cfg))

    def test_empty_trigger_raises(self, tmp_path):
        cfg = tmp_path / ".prt-guard.yml"
        cfg.write_text("trigger: ''\n")
        with pytest.raises(ConfigError, match="trigger"):
            load_config(config_path=str(cfg))

    def test_invalid_regex_raises_on_settings(self):
        config = Config(guard_patterns=["github.actor ==("])
        with pytest.raises(ConfigError, match="Invalid guard pattern"):
            config.rule_settings()


# ---------------------------------------------------------------------------
# load_config auto-discovery via scan_path
# ---------------------------------------------------------------------------

class TestConfigAutoDiscovery:
    def test_finds_config_in_scan_dir(self, tmp_path):
        cfg = tmp_path / ".prt-guard.yml"
        cfg.write_text("trigger: workflow_run\n")
        config = load_config(scan_path=str(tmp_path))
        assert config.trigger == "workflow_run"

    def test_finds_config_in_parent_dir(self, tmp_path):
        cfg = tmp_path / ".prt-guard.yml"
        cfg.write_text("exclude:\n  - legacy.yml\n")
        workflows_dir = tmp_path / ".github" / "workflows"
        workflows_dir.mkdir(parents=True)
        config = load_config(scan_path=str(workflows_dir))
        assert config.exclude == ["legacy.yml"]

    def test_finds_config_from_file_path(self, tmp_path):
        cfg = tmp_path / ".prt-guard.yml"
        cfg.write_text("checkout_action: my-org/checkout\n")
        wf_file = tmp_path / "ci.yml"
        wf_file.write_text("name: CI\n")
        config = load_config(scan_path=str(wf_file))
        assert config.checkout_action == "my-org/checkout"

    def test_cwd_fallback(self, tmp_path, monkeypatch):
        cfg = tmp_path / ".prt-guard.yml"
        cfg.write_text("ref_parameter: sha\n")
        monkeypatch.chdir(tmp_path)
        config = load_config()
        assert config.ref_parameter == "sha"


# ---------------------------------------------------------------------------
# Exclude matching
# ---------------------------------------------------------------------------

class TestConfigExclude:
    def test_records_config_directory(self, tmp_path):
        cfg = tmp_path / ".prt-guard.yml"
        cfg.write_text("exclude:\n  - legacy.yml\n")
        config = load_config(config_path=str(cfg))
        assert config.base_dir == str(tmp_path)

    def test_pattern_relative_to_config_dir(self, tmp_path):
        config = Config(exclude=[".github/workflows/legacy.yml"], base_dir=str(tmp_path))
        assert config.is_excluded(str(tmp_path / ".github" / "workflows" / "legacy.yml"))
        assert not config.is_excluded(str(tmp_path / ".github" / "workflows" / "ci.yml"))

    def test_pattern_relative_to_scan_root(self, tmp_path):
        wf_dir = tmp_path / "workflows"
        config = Config(exclude=["legacy.yml"])
        assert config.is_excluded(str(wf_dir / "legacy.yml"), scan_root=str(wf_dir))
        assert not config.is_excluded(str(wf_dir / "legacy.yml"))

    def test_pattern_against_absolute_path(self, tmp_path):
        config = Config(exclude=["*/test-*.yml"])
        assert config.is_excluded(str(tmp_path / "test-matrix.yml"))

    def test_files_outside_roots_use_absolute_path_only(self, tmp_path):
        config = Config(exclude=["other.yml"], base_dir=str(tmp_path / "repo"))
        assert not config.is_excluded(str(tmp_path / "other.yml"))

    def test_no_patterns_excludes_nothing(self, tmp_path):
        assert not Config(base_dir=str(tmp_path)).is_excluded(str(tmp_path / "ci.yml"))
