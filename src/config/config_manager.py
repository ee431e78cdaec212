# src/config/config_manager.py

import yaml
import os
import logging
import threading
from typing import Dict, Any, List
from pathlib import Path
from dataclasses import dataclass

from src.core.models import Policy, PolicyConfiguration

POLICY_SECTION = 'policy_configuration'
LOGGING_SECTION = 'logging'
ENV_PREFIX = 'APP_'
ENV_NESTING_SEPARATOR = '__'

_TRUE_VALUES = {'true', 'yes', '1', 'on'}
_FALSE_VALUES = {'false', 'no', '0', 'off'}


@dataclass
class LoggingConfig:
    log_file: str = "logFile.log"
    log_level: str = "DEBUG"
    console_level: str = "DEBUG"


class ConfigurationError(Exception):
    """Custom exception for configuration errors"""
    pass


class ConfigManager:
    def __init__(self,
                 config_path: str,
                 environment: str) -> None:
        """
        Initialize configuration manager

        Args:
            config_path: Directory holding base.yaml and <environment>.yaml
            environment: Deployment environment (dev/staging/prod)
        """
        self.config_path = Path(config_path)
        self.environment = environment
        self.logger = logging.getLogger(__name__)

        # Initialize internal state
        self._config_cache: Dict[str, Any] = {}
        self._config_lock = threading.RLock()

        # Load initial configuration
        self.reload_config()

    def get_config(self, component: str) -> Dict[str, Any]:
        """
        Get configuration for a specific component

        Args:
            component: Section name (e.g., 'policy_configuration', 'logging')

        Returns:
            Dictionary containing the section
        """
        with self._config_lock:
            if component not in self._config_cache:
                self.reload_config()
            return self._config_cache.get(component, {})

    def reload_config(self) -> None:
        """Reload configuration from files and environment"""
        with self._config_lock:
            try:
                base_config = self._load_yaml_config('base')
                env_config = self._load_yaml_config(self.environment)

                self._config_cache = self._merge_configs(base_config, env_config)
                self._apply_env_variables()
                self._validate_config()
                self.logger.info(f"Loaded configuration for environment '{self.environment}' from {self.config_path}")

            except ConfigurationError:
                raise
            except Exception as e:
                self.logger.error(f"Failed to reload configuration: {str(e)}")
                raise ConfigurationError(f"Configuration reload failed: {str(e)}") from e

    def _load_yaml_config(self, config_name: str) -> Dict[str, Any]:
        """Load YAML configuration file, an absent file is an empty config"""
        config_file = self.config_path / f"{config_name}.yaml"
        if not config_file.exists():
            return {}
        try:
            with open(config_file, 'r', encoding='utf-8') as f:
                loaded = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            self.logger.error(f"Failed to load {config_name} configuration: {str(e)}")
            raise ConfigurationError(f"Failed to load {config_name} configuration: {str(e)}") from e

        if loaded is None:
            return {}
        if not isinstance(loaded, dict):
            raise ConfigurationError(f"{config_file} must contain a mapping at the top level")
        return loaded

    def _merge_configs(self, base: Dict[str, Any],
                       override: Dict[str, Any]) -> Dict[str, Any]:
        """Merge configuration dictionaries with override"""
        merged = base.copy()
        for key, value in override.items():
            if isinstance(value, dict) and isinstance(merged.get(key), dict):
                merged[key] = self._merge_configs(merged[key], value)
            else:
                merged[key] = value
        return merged

    def _apply_env_variables(self) -> None:
        """Apply environment variable overrides

        APP_POLICY_CONFIGURATION__MAX_THREADS=8 sets
        policy_configuration.max_threads, and so does
        APP_POLICY_CONFIGURATION_MAX_THREADS=8 because the longest known
        section name is matched first.
        """
        for key, value in os.environ.items():
            if key.startswith(ENV_PREFIX):
                config_path = self._env_key_to_path(key[len(ENV_PREFIX):].lower())
                self._set_nested_value(self._config_cache, config_path, value)

    def _env_key_to_path(self, key: str) -> List[str]:
        if ENV_NESTING_SEPARATOR in key:
            return key.split(ENV_NESTING_SEPARATOR)
        sections = {s for s in self._config_cache if isinstance(s, str)}
        sections.update((POLICY_SECTION, LOGGING_SECTION))
        for section in sorted(sections, key=len, reverse=True):
            if key.startswith(f"{section}_"):
                return [section, key[len(section) + 1:]]
        return [key]

    def _set_nested_value(self, config: Dict[str, Any],
                          path: list, value: Any) -> None:
        """Set nested dictionary value using path list"""
        current = config
        for part in path[:-1]:
            if not isinstance(current.get(part), dict):
                current[part] = {}
            current = current[part]
        current[path[-1]] = value

    def _validate_config(self) -> None:
        """Validate configuration completeness and types"""
        if POLICY_SECTION not in self._config_cache:
            raise ConfigurationError(f"Missing configuration for {POLICY_SECTION}")

        section = self._config_cache[POLICY_SECTION]
        if not isinstance(section, dict):
            raise ConfigurationError(f"{POLICY_SECTION} must be a mapping")

        section['max_threads'] = self._coerce_int(
            section.get('max_threads', 1), f"{POLICY_SECTION}.max_threads", minimum=1)

        policies = section.get('policies') or []
        if not isinstance(policies, list):
            raise ConfigurationError(f"{POLICY_SECTION}.policies must be a list")
        section['policies'] = [
            self._validate_policy(policy, index) for index, policy in enumerate(policies)
        ]

        logging_config = self._config_cache.setdefault(LOGGING_SECTION, {})
        if not isinstance(logging_config, dict):
            raise ConfigurationError(f"{LOGGING_SECTION} must be a mapping")
        for level_key in ('log_level', 'console_level'):
            level = logging_config.get(level_key)
            if level is not None and not isinstance(logging.getLevelName(str(level).upper()), int):
                raise ConfigurationError(f"Invalid {LOGGING_SECTION}.{level_key}: {level}")

    def _validate_policy(self, policy: Any, index: int) -> Dict[str, Any]:
        """Validate and normalize one policy record"""
        where = f"{POLICY_SECTION}.policies[{index}]"
        if not isinstance(policy, dict):
            raise ConfigurationError(f"{where} must be a mapping")

        directory_path = self._resolve_reference(policy.get('directory_path'))
        if not directory_path or not isinstance(directory_path, str):
            raise ConfigurationError(f"Missing required policy configuration: {where}.directory_path")

        search_pattern = policy.get('search_pattern', '*')
        if not search_pattern or not isinstance(search_pattern, str):
            raise ConfigurationError(f"{where}.search_pattern must be a non-empty string")
        if '/' in search_pattern or (os.sep != '/' and os.sep in search_pattern):
            raise ConfigurationError(f"{where}.search_pattern must not contain path separators")

        return {
            'directory_path': directory_path,
            'search_pattern': search_pattern,
            'is_recursive': self._coerce_bool(policy.get('is_recursive', False), f"{where}.is_recursive"),
            'older_than_in_days': self._coerce_int(
                policy.get('older_than_in_days', 0), f"{where}.older_than_in_days", minimum=0),
        }

    @staticmethod
    def _coerce_int(value: Any, name: str, minimum: int) -> int:
        if isinstance(value, bool):
            raise ConfigurationError(f"{name} must be an integer, got {value!r}")
        try:
            result = int(value)
        except (TypeError, ValueError):
            raise ConfigurationError(f"{name} must be an integer, got {value!r}") from None
        if isinstance(value, float) and value != result:
            raise ConfigurationError(f"{name} must be an integer, got {value!r}")
        if result < minimum:
            raise ConfigurationError(f"{name} must be >= {minimum}, got {result}")
        return result

    @staticmethod
    def _coerce_bool(value: Any, name: str) -> bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in _TRUE_VALUES:
                return True
            if lowered in _FALSE_VALUES:
                return False
        raise ConfigurationError(f"{name} must be a boolean, got {value!r}")

    def _resolve_reference(self, value: Any) -> Any:
        """
        Resolve an env:VAR_NAME reference

        Args:
            value: Value that may contain an 'env:VAR_NAME' reference

        Returns:
            Resolved value, or the value as-is if it is not a reference
        """
        if isinstance(value, str) and value.startswith('env:'):
            env_var = value.split(':', 1)[1]
            result = os.environ.get(env_var, '')
            if not result:
                raise ConfigurationError(f"Environment variable '{env_var}' not set")
            return result
        return value

    def get_policy_configuration(self) -> PolicyConfiguration:
        """Get policy configuration as dataclass"""
        section = self.get_config(POLICY_SECTION)
        return PolicyConfiguration(
            max_threads=section['max_threads'],
            policies=tuple(Policy(**policy) for policy in section['policies'])
        )

    def get_logging_config(self) -> LoggingConfig:
        """Get logging configuration as dataclass"""
        logging_config = self.get_config(LOGGING_SECTION)
        return LoggingConfig(
            log_file=logging_config.get('log_file', 'logFile.log'),
            log_level=str(logging_config.get('log_level', 'DEBUG')).upper(),
            console_level=str(logging_config.get('console_level', 'DEBUG')).upper()
        )
