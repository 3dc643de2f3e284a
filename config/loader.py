"""Runtime configuration loader.

Configuration priority (highest to lowest):
1. Caller overrides
2. Project config (<workspace>/.sigrid/runtime.json)
3. User config (~/.sigrid/runtime.json)
4. System defaults (config/defaults/runtime.json)

Project rules (<workspace>/.sigrid/rules/*.md) are appended to
``instructions``. A rule may open with a YAML front-matter block;
``enabled: false`` switches it off.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

import yaml

from config.schema import SigridSettings

logger = logging.getLogger(__name__)

CONFIG_DIR_NAME = ".sigrid"
RUNTIME_FILE = "runtime.json"


class ConfigLoader:
    """Loader for runtime settings and project rules."""

    def __init__(self, workspace_root: str | Path | None = None, user_home: str | Path | None = None):
        self.workspace_root = Path(workspace_root).resolve() if workspace_root else None
        self.user_home = Path(user_home) if user_home else Path.home()
        self._system_defaults_dir = Path(__file__).parent / "defaults"

    def load(self, overrides: dict[str, Any] | None = None) -> SigridSettings:
        """Load settings with the four-tier merge."""
        final_config = self._deep_merge(
            self._load_system_defaults(),
            self._load_user_config(),
            self._load_project_config(),
            overrides or {},
        )
        final_config = self._expand_env_vars(final_config)
        final_config = self._remove_none_values(final_config)

        rules = self.load_rules()
        if rules:
            final_config["instructions"] = list(final_config.get("instructions", [])) + rules

        return SigridSettings(**final_config)

    def load_rules(self) -> list[str]:
        """Return the enabled project rules, ordered by file name."""
        if not self.workspace_root:
            return []
        rules_dir = self.workspace_root / CONFIG_DIR_NAME / "rules"
        if not rules_dir.is_dir():
            return []
        rules = []
        for md in sorted(rules_dir.glob("*.md")):
            try:
                content = md.read_text(encoding="utf-8")
            except OSError as e:
                logger.warning("Skipping unreadable rule %s: %s", md.name, e)
                continue
            body = self.parse_rule(content)
            if body:
                rules.append(body)
        return rules

    @staticmethod
    def parse_rule(content: str) -> str | None:
        """Strip optional YAML front-matter; None if the rule is disabled or empty."""
        if content.startswith("---"):
            parts = content.split("---", 2)
            if len(parts) == 3:
                try:
                    fm = yaml.safe_load(parts[1]) or {}
                except yaml.YAMLError:
                    fm = {}
                if isinstance(fm, dict) and fm.get("enabled") is False:
                    return None
                content = parts[2]
        content = content.strip()
        return content or None

    # ── Internal helpers ──

    def _load_system_defaults(self) -> dict[str, Any]:
        return self._load_json(self._system_defaults_dir / RUNTIME_FILE)

    def _load_user_config(self) -> dict[str, Any]:
        return self._load_json(self.user_home / CONFIG_DIR_NAME / RUNTIME_FILE)

    def _load_project_config(self) -> dict[str, Any]:
        if not self.workspace_root:
            return {}
        return self._load_json(self.workspace_root / CONFIG_DIR_NAME / RUNTIME_FILE)

    @staticmethod
    def _load_json(path: Path) -> dict[str, Any]:
        if not path.exists():
            return {}
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Ignoring unreadable config %s: %s", path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def _deep_merge(self, *dicts: dict[str, Any]) -> dict[str, Any]:
        """Deep merge multiple dictionaries. Later dicts override earlier ones."""
        result: dict[str, Any] = {}
        for d in dicts:
            for key, value in d.items():
                if key not in result:
                    result[key] = value
                elif value is None:
                    continue
                elif isinstance(value, dict) and isinstance(result[key], dict):
                    result[key] = self._deep_merge(result[key], value)
                else:
                    result[key] = value
        return result

    def _expand_env_vars(self, obj: Any) -> Any:
        """Recursively expand ${VAR} and ~ in string values."""
        if isinstance(obj, dict):
            return {k: self._expand_env_vars(v) for k, v in obj.items()}
        if isinstance(obj, list):
            return [self._expand_env_vars(v) for v in obj]
        if isinstance(obj, str):
            return os.path.expandvars(os.path.expanduser(obj))
        return obj

    def _remove_none_values(self, obj: Any) -> Any:
        """Recursively remove None values to allow Pydantic defaults."""
        if isinstance(obj, dict):
            return {k: self._remove_none_values(v) for k, v in obj.items() if v is not None}
        if isinstance(obj, list):
            return [self._remove_none_values(v) for v in obj if v is not None]
        return obj


def load_settings(
    workspace_root: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> SigridSettings:
    """Convenience function to load runtime configuration."""
    return ConfigLoader(workspace_root=workspace_root).load(overrides=overrides)
