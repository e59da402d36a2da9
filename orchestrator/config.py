#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Configuration management for storefront matching runs.
Loads YAML config with environment variable support.
"""

import copy
import os
import yaml
from pathlib import Path
from typing import Any, Dict


DEFAULT_CONFIG: Dict[str, Any] = {
    'storefront': {
        'base_url': 'https://music.apple.com',
        'country': 'us',
        'language': 'en-US'
    },
    'http': {
        'timeout': 15,
        'throttle_seconds': 1.0,
        'user_agent': None
    },
    'matching': {
        'mode': 'automatic',
        'auto_apply_threshold': 0.75,
        'max_candidates': 10,
        'max_attempts': 3
    },
    'cache': {
        'enabled': True,
        'path': 'state/storefront-cache.json',
        'ttl_minutes': 60
    },
    'grouping': {
        'policy': 'smart'
    },
    'genre': {
        'mode': 'replace',
        'max_genres': 3
    },
    'cover': {
        'size': 1000,
        'filename': 'cover.jpg',
        'embed': False
    },
    'writes': {
        'max_attempts': 4,
        'backoff_seconds': 0.5
    },
    'output': {
        'reports_path': 'outputs'
    },
    'logging': {
        'verbose': False
    }
}


class ConfigManager:
    """
    Configuration manager that loads settings from a YAML file.
    Missing keys fall back to DEFAULT_CONFIG; values like ${VAR} are
    expanded from the environment.
    """

    def __init__(self, config_path: str = "music-match.yaml"):
        self.config_path = Path(config_path)
        self._config: Dict[str, Any] = {}
        self.load()

    def load(self) -> None:
        """Load configuration file over the defaults"""
        self._config = copy.deepcopy(DEFAULT_CONFIG)

        if self.config_path.exists():
            with open(self.config_path, 'r', encoding='utf-8') as f:
                loaded = yaml.safe_load(f) or {}
            self._merge(self._config, loaded)
        else:
            print(f"[Config] Warning: Config file not found: {self.config_path}, using defaults")

    def _merge(self, base: Dict[str, Any], overrides: Dict[str, Any]) -> None:
        for key, value in overrides.items():
            if isinstance(value, dict) and isinstance(base.get(key), dict):
                self._merge(base[key], value)
            else:
                base[key] = value

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get config value with dot notation.

        Examples:
            config.get('storefront.country')
            config.get('cache.ttl_minutes')

        Environment variables are expanded if value is like ${VAR_NAME}
        """
        keys = key.split('.')
        value = self._config

        for k in keys:
            if isinstance(value, dict):
                value = value.get(k)
            else:
                return default
            if value is None:
                return default

        # Expand environment variables
        if isinstance(value, str) and value.startswith('${') and value.endswith('}'):
            env_var = value[2:-1]
            return os.environ.get(env_var, default)

        return value

    def set(self, key: str, value: Any) -> None:
        """Override a value with dot notation (used for CLI flags)"""
        keys = key.split('.')
        target = self._config
        for k in keys[:-1]:
            target = target.setdefault(k, {})
        target[keys[-1]] = value

    @property
    def country(self) -> str:
        return self.get('storefront.country', 'us')

    @property
    def language(self) -> str:
        return self.get('storefront.language', 'en-US')

    @property
    def base_url(self) -> str:
        return self.get('storefront.base_url', 'https://music.apple.com')

    @property
    def timeout(self) -> int:
        return int(self.get('http.timeout', 15))

    @property
    def throttle_seconds(self) -> float:
        return float(self.get('http.throttle_seconds', 1.0))

    @property
    def auto_apply_threshold(self) -> float:
        return float(self.get('matching.auto_apply_threshold', 0.75))

    @property
    def max_candidates(self) -> int:
        return int(self.get('matching.max_candidates', 10))

    @property
    def max_attempts(self) -> int:
        return int(self.get('matching.max_attempts', 3))

    @property
    def mode(self) -> str:
        return self.get('matching.mode', 'automatic')

    @property
    def cache_enabled(self) -> bool:
        return bool(self.get('cache.enabled', True))

    @property
    def cache_path(self) -> str:
        return self.get('cache.path', 'state/storefront-cache.json')

    @property
    def cache_ttl_minutes(self) -> float:
        return float(self.get('cache.ttl_minutes', 60))

    @property
    def grouping_policy(self) -> str:
        return self.get('grouping.policy', 'smart')

    @property
    def reports_path(self) -> str:
        return self.get('output.reports_path', 'outputs')

    @property
    def verbose(self) -> bool:
        return bool(self.get('logging.verbose', False))

    def __repr__(self) -> str:
        return f"ConfigManager(config={self.config_path})"
