import os
import yaml
import json
from pathlib import Path
from typing import Any, Dict, Optional

from .exceptions import ConfigurationError


class ConfigManager:
    """Manages configuration for gherkin-core"""

    def __init__(self, config_path: Optional[Path] = None):
        self.config_path = config_path or self._get_default_config_path()
        self._config = self._load_config()

    def _get_default_config_path(self) -> Path:
        """Get default configuration path"""
        # Check environment variable first
        if env_path := os.getenv("GHERKIN_CORE_CONFIG"):
            return Path(env_path)

        locations = [
            Path.cwd() / "gherkin-core.yaml",
            Path.cwd() / ".gherkin-core" / "config.yaml",
            Path.home() / ".gherkin-core" / "config.yaml",
        ]

        for location in locations:
            if location.exists():
                return location

        return Path.home() / ".gherkin-core" / "config.yaml"

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from file, layered over the defaults"""
        config = self._get_default_config()
        if not self.config_path.exists():
            return config

        with open(self.config_path, 'r') as f:
            if self.config_path.suffix in ('.yaml', '.yml'):
                loaded = yaml.safe_load(f) or {}
            elif self.config_path.suffix == '.json':
                loaded = json.load(f)
            else:
                raise ConfigurationError(f"Unsupported config format: {self.config_path.suffix}")

        if not isinstance(loaded, dict):
            raise ConfigurationError(f"Config file must contain a mapping: {self.config_path}")

        for section, values in loaded.items():
            if isinstance(values, dict) and isinstance(config.get(section), dict):
                config[section].update(values)
            else:
                config[section] = values
        return config

    def _get_default_config(self) -> Dict[str, Any]:
        """Get default configuration"""
        return {
            "general": {
                "log_level": "INFO",
            },
            "runner": {
                "dry_run": False,
                "tags": None,
                "parallel_workers": 1,
                "parameter_types": {},
            },
        }

    @property
    def data(self) -> Dict[str, Any]:
        return self._config

    def get(self, key: str, default: Any = None) -> Any:
        """Look up a dotted key such as ``runner.parallel_workers``"""
        node: Any = self._config
        for part in key.split('.'):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node

    def set(self, key: str, value: Any) -> None:
        """Set a dotted key, creating intermediate sections as needed"""
        *sections, leaf = key.split('.')
        node = self._config
        for part in sections:
            child = node.setdefault(part, {})
            if not isinstance(child, dict):
                raise ConfigurationError(f"Cannot set '{key}': '{part}' is not a section")
            node = child
        node[leaf] = value

    def save(self) -> Path:
        """Write the current configuration back to ``config_path``"""
        self.config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(self.config_path, 'w') as f:
            if self.config_path.suffix == '.json':
                json.dump(self._config, f, indent=2)
            else:
                yaml.safe_dump(self._config, f, default_flow_style=False, sort_keys=False)
        return self.config_path

    def get_module_config(self, module_name: str) -> Dict[str, Any]:
        """The section for one component, e.g. ``runner``; empty when missing"""
        section = self.get(module_name, {})
        return dict(section) if isinstance(section, dict) else {}
