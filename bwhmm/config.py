"""
Configuration management system for bwhmm.

Settings live in a nested dictionary of sections (hmm, init, persistence,
logging). Values are resolved in order: built-in defaults, the JSON file
named by BWHMM_CONFIG, individual BWHMM_* variables, then runtime calls to
set_config/update_config/load_config_file.
"""

import os
import copy
import json
from typing import Dict, Any, Optional
from pathlib import Path


DEFAULT_CONFIG = {
    'hmm': {
        'iterations_count': 100,
        'forward_mode': 'linear',
        'degenerate_policy': 'uniform',
        'stochastic_tolerance': 1e-6
    },
    'init': {
        'strategy': 'uniform',
        'self_transition_weight': 0.3,
        'random_seed': None
    },
    'persistence': {
        'models_dir': 'models',
        'compress': 3
    },
    'logging': {
        'level': 'INFO',
        'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        'file_logging': False,
        'log_file': 'bwhmm.log'
    }
}

# Environment variable -> (section, key, parser)
ENV_OVERRIDES = {
    'BWHMM_ITERATIONS': ('hmm', 'iterations_count', int),
    'BWHMM_FORWARD_MODE': ('hmm', 'forward_mode', str),
    'BWHMM_DEGENERATE_POLICY': ('hmm', 'degenerate_policy', str),
    'BWHMM_STOCHASTIC_TOLERANCE': ('hmm', 'stochastic_tolerance', float),
    'BWHMM_RANDOM_SEED': ('init', 'random_seed', int),
    'BWHMM_MODELS_DIR': ('persistence', 'models_dir', str),
    'BWHMM_LOG_LEVEL': ('logging', 'level', str)
}


def _merge_sections(target: Dict[str, Any], overrides: Dict[str, Any]) -> None:
    for section, values in overrides.items():
        if isinstance(values, dict):
            target.setdefault(section, {}).update(values)
        else:
            target[section] = values


class ConfigManager:
    """Holds the active configuration for the process."""

    def __init__(self):
        self._config = copy.deepcopy(DEFAULT_CONFIG)
        self._apply_environment()

    def _apply_environment(self):
        config_file = os.getenv('BWHMM_CONFIG')
        if config_file and Path(config_file).is_file():
            self.load_from_file(config_file)

        for env_var, (section, key, parse) in ENV_OVERRIDES.items():
            raw = os.getenv(env_var)
            if raw is None:
                continue
            try:
                self._config[section][key] = parse(raw)
            except ValueError:
                continue  # unparseable values leave the previous setting

    def get(self, section: str, key: Optional[str] = None) -> Any:
        """Return one value, or a whole section when key is None."""
        values = self._config.get(section, {})
        if key is None:
            return values
        return values.get(key)

    def set(self, section: str, key: str, value: Any) -> None:
        self._config.setdefault(section, {})[key] = value

    def update(self, config_dict: Dict[str, Any]) -> None:
        """Merge a {section: {key: value}} dictionary into the configuration."""
        _merge_sections(self._config, config_dict)

    def load_from_file(self, config_path: str) -> None:
        """
        Merge a JSON configuration file.

        Raises:
            ValueError: If the file can't be read or isn't a JSON object
        """
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                file_config = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ValueError(f"Failed to load config from {config_path}: {e}")

        if not isinstance(file_config, dict):
            raise ValueError(
                f"Failed to load config from {config_path}: expected a JSON object, "
                f"got {type(file_config).__name__}"
            )

        self.update(file_config)

    def save_to_file(self, config_path: str) -> None:
        path = Path(config_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(self._config, f, indent=2)

    def get_all(self) -> Dict[str, Any]:
        return copy.deepcopy(self._config)

    def reset_to_defaults(self) -> None:
        """Discard runtime changes; environment overrides are applied again."""
        self._config = copy.deepcopy(DEFAULT_CONFIG)
        self._apply_environment()


_config_manager = ConfigManager()


def get_config(section: str, key: Optional[str] = None) -> Any:
    """Get configuration value(s) from the global config manager."""
    return _config_manager.get(section, key)


def set_config(section: str, key: str, value: Any) -> None:
    """Set a configuration value in the global config manager."""
    _config_manager.set(section, key, value)


def update_config(config_dict: Dict[str, Any]) -> None:
    """Merge a nested dictionary into the global configuration."""
    _config_manager.update(config_dict)


def load_config_file(config_path: str) -> None:
    """Merge a JSON file into the global configuration."""
    _config_manager.load_from_file(config_path)


def save_config_file(config_path: str) -> None:
    """Write the global configuration to a JSON file."""
    _config_manager.save_to_file(config_path)


def get_all_config() -> Dict[str, Any]:
    """Deep copy of the global configuration."""
    return _config_manager.get_all()


def reset_config() -> None:
    """Reset the global configuration to defaults plus environment overrides."""
    _config_manager.reset_to_defaults()
