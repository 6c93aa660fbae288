"""Configuration manager for changelens using TOML files.

Example ``~/.changelens/config.toml``::

    [confluence]
    base_url = "https://wiki.example.com"
    space_key = "ENG"
    parent_page_id = "123456"

    [rules]
    path_segments = ["handlers", "usecases?"]
    keywords = ["invoice", "pricing"]
    patterns = ["\\bcharge\\w*"]

Environment variables ``CONFLUENCE_BASE_URL``, ``CONFLUENCE_TOKEN``,
``CONFLUENCE_SPACE_KEY`` and ``CONFLUENCE_PARENT_PAGE_ID`` take precedence
over the ``[confluence]`` section.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, List

import toml

from . import config
from .models import ConfluenceSettings
from .rules import RuleSet

logger = logging.getLogger(__name__)

CONFIG_FILE = config.BASE_DIR / "config.toml"

CONFLUENCE_ENV = {
    "base_url": "CONFLUENCE_BASE_URL",
    "token": "CONFLUENCE_TOKEN",
    "space_key": "CONFLUENCE_SPACE_KEY",
    "parent_page_id": "CONFLUENCE_PARENT_PAGE_ID",
}


def load_full_config() -> Dict[str, Any]:
    """Load the entire TOML config (all sections).

    A missing file yields ``{}``; an unreadable one is logged and treated
    as empty so a broken config never blocks an audit run.
    """
    if not CONFIG_FILE.exists():
        return {}
    try:
        with open(CONFIG_FILE, "r", encoding="utf-8") as f:
            return toml.load(f)
    except (OSError, toml.TomlDecodeError) as exc:
        logger.warning("Ignoring unreadable config file %s: %s", CONFIG_FILE, exc)
        return {}


def _save_full_config(data: Dict[str, Any]) -> None:
    CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
    with open(CONFIG_FILE, "w", encoding="utf-8") as f:
        toml.dump(data, f)


def _string_list(section: Dict[str, Any], key: str) -> List[str]:
    value = section.get(key, [])
    if isinstance(value, str):
        return [value]
    return [str(v) for v in value]


def load_rules_config() -> Dict[str, List[str]]:
    """Return the ``[rules]`` section with every key normalised to a list."""
    section = load_full_config().get("rules", {})
    return {
        "path_segments": _string_list(section, "path_segments"),
        "keywords": _string_list(section, "keywords"),
        "patterns": _string_list(section, "patterns"),
    }


def build_rule_set() -> RuleSet:
    """Default rule tables extended with any user rules from config.

    Raises:
        ValueError: if a configured pattern is not a valid regex.
    """
    extra = load_rules_config()
    if not any(extra.values()):
        return RuleSet.default()
    logger.debug("Extending rule set from %s: %s", CONFIG_FILE, extra)
    return RuleSet.default().extended(**extra)


def load_confluence_settings() -> ConfluenceSettings:
    section = load_full_config().get("confluence", {})
    values: Dict[str, Any] = {}
    for field_name, env_name in CONFLUENCE_ENV.items():
        values[field_name] = os.environ.get(env_name) or section.get(field_name) or ""
    return ConfluenceSettings(
        base_url=values["base_url"].rstrip("/"),
        token=values["token"],
        space_key=values["space_key"],
        parent_page_id=values["parent_page_id"] or None,
    )


def save_confluence_settings(settings: ConfluenceSettings, include_token: bool = False) -> None:
    """Persist Confluence settings, preserving other sections.

    The token is only written when *include_token* is set; prefer the
    ``CONFLUENCE_TOKEN`` environment variable.
    """
    data = load_full_config()
    section: Dict[str, Any] = {
        "base_url": settings.base_url,
        "space_key": settings.space_key,
    }
    if settings.parent_page_id:
        section["parent_page_id"] = settings.parent_page_id
    if include_token and settings.token:
        section["token"] = settings.token
    data["confluence"] = section
    _save_full_config(data)
