"""Tests for TOML configuration handling."""

import pytest
import toml

from changelens import config_manager
from changelens.models import ConfluenceSettings
from changelens.rules import match_path


def _write_config(text: str) -> None:
    config_manager.CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
    config_manager.CONFIG_FILE.write_text(text, encoding="utf-8")


def test_missing_config_is_empty():
    assert config_manager.load_full_config() == {}


def test_broken_config_is_ignored():
    _write_config("[rules\nkeywords = ")
    assert config_manager.load_full_config() == {}


def test_rules_section_is_normalised():
    _write_config('[rules]\npath_segments = "handlers"\nkeywords = ["Invoice"]\n')
    assert config_manager.load_rules_config() == {
        "path_segments": ["handlers"],
        "keywords": ["Invoice"],
        "patterns": [],
    }


def test_build_rule_set_extends_defaults():
    _write_config('[rules]\npath_segments = ["handlers"]\n')
    rules = config_manager.build_rule_set()
    assert match_path(rules, "src/handlers/a.ts") == ["handlers"]
    assert match_path(rules, "src/services/a.ts") == ["services"]


def test_build_rule_set_rejects_bad_pattern():
    _write_config('[rules]\npatterns = ["(oops"]\n')
    with pytest.raises(ValueError):
        config_manager.build_rule_set()


def test_confluence_settings_from_file():
    _write_config(
        '[confluence]\nbase_url = "https://wiki.example.com/"\n'
        'token = "t"\nspace_key = "ENG"\n'
    )
    settings = config_manager.load_confluence_settings()
    assert settings.base_url == "https://wiki.example.com"
    assert settings.parent_page_id is None
    assert settings.is_complete


def test_environment_overrides_file(monkeypatch):
    _write_config('[confluence]\nbase_url = "https://old"\nspace_key = "OLD"\n')
    monkeypatch.setenv("CONFLUENCE_BASE_URL", "https://new")
    monkeypatch.setenv("CONFLUENCE_TOKEN", "env-token")
    monkeypatch.setenv("CONFLUENCE_PARENT_PAGE_ID", "12")

    settings = config_manager.load_confluence_settings()
    assert settings == ConfluenceSettings(
        base_url="https://new", token="env-token", space_key="OLD", parent_page_id="12",
    )


def test_incomplete_without_token():
    _write_config('[confluence]\nbase_url = "https://wiki"\nspace_key = "ENG"\n')
    assert not config_manager.load_confluence_settings().is_complete


def test_save_preserves_other_sections():
    _write_config('[rules]\nkeywords = ["invoice"]\n')
    config_manager.save_confluence_settings(
        ConfluenceSettings(base_url="https://wiki", token="secret", space_key="ENG")
    )

    data = toml.load(str(config_manager.CONFIG_FILE))
    assert data["rules"] == {"keywords": ["invoice"]}
    assert data["confluence"] == {"base_url": "https://wiki", "space_key": "ENG"}


def test_save_token_on_request():
    config_manager.save_confluence_settings(
        ConfluenceSettings(base_url="https://wiki", token="secret", space_key="ENG"),
        include_token=True,
    )
    assert config_manager.load_confluence_settings().token == "secret"
