"""Handles loading configuration from YAML files."""

import yaml
import os
import logging
from typing import Any, Dict, Mapping, Optional
from .exceptions import ConfigurationError
from .log_setup import DEFAULT_QUIET_LOGGERS

logger = logging.getLogger(__name__)

DEFAULT_CONFIG: Dict[str, Any] = {
    'general_backend': 'srt_cli',
    'whisper_model': 'base',
    'whisper_python': 'python',
    'whisper_bin': 'whisper',
    'specialized_model': 'Oriserve/Whisper-Hindi2Hinglish-Swift',
    'specialized_mode': 'process',
    'specialized_python': 'python3',
    'specialized_chunk_length': 15,
    'device': 'cuda',
    'transcription_timeout_seconds': None,
    'max_concurrent_transcriptions': 2,
    'temp_dir': 'temp',
    'ffmpeg_path': None,
    'log_dir': 'logs',
    'log_file': 'captiongen.log',
    'log_max_bytes': 10 * 1024 * 1024,
    'log_backup_count': 5,
    'quiet_loggers': list(DEFAULT_QUIET_LOGGERS),
}

# Environment variables that override a config key when set.
ENV_OVERRIDES = {
    'HINGLISH_PYTHON': 'specialized_python',
}

class ConfigLoader:
    """Loads configuration settings from a YAML file."""

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        self.environ = os.environ if environ is None else environ

    def load_config(self, config_path: str) -> dict:
        """
        Loads configuration from the specified YAML file path.

        Values from the file are layered over DEFAULT_CONFIG, then
        environment overrides are applied.

        Args:
            config_path: The path to the YAML configuration file.

        Returns:
            A dictionary containing the loaded configuration settings.

        Raises:
            FileNotFoundError: If the configuration file does not exist.
            ConfigurationError: If the file cannot be parsed as YAML or
                              if there are other reading errors.
        """
        logger.info(f"Attempting to load configuration from: {config_path}")
        if not os.path.exists(config_path):
            logger.error(f"Configuration file not found at path: {config_path}")
            raise FileNotFoundError(f"Configuration file not found: {config_path}")
        if not os.path.isfile(config_path):
             logger.error(f"Configuration path is not a file: {config_path}")
             raise ConfigurationError(f"Configuration path is not a file: {config_path}")

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                loaded = yaml.safe_load(f)
        except yaml.YAMLError as e:
            logger.error(f"Error parsing YAML configuration file {config_path}: {e}", exc_info=True)
            raise ConfigurationError(f"Invalid YAML format in {config_path}: {e}") from e
        except IOError as e:
            logger.error(f"Error reading configuration file {config_path}: {e}", exc_info=True)
            raise ConfigurationError(f"Could not read configuration file {config_path}: {e}") from e

        if loaded is None:
            loaded = {} # Empty file: defaults only
        if not isinstance(loaded, dict):
            logger.error(f"Configuration file {config_path} did not load as a dictionary (root object).")
            raise ConfigurationError(f"Invalid YAML structure in {config_path}. Root must be a mapping (dictionary).")

        config = self.with_defaults(loaded)
        logger.info(f"Configuration loaded successfully from {config_path}")
        return config

    def with_defaults(self, overrides: Optional[Mapping[str, Any]] = None) -> dict:
        """Merges a partial configuration over the defaults and applies environment overrides."""
        config = dict(DEFAULT_CONFIG)
        config.update(overrides or {})
        for env_name, key in ENV_OVERRIDES.items():
            value = self.environ.get(env_name)
            if value:
                logger.info(f"Overriding '{key}' from environment variable {env_name}")
                config[key] = value
        self._validate(config)
        return config

    @staticmethod
    def _validate(config: Mapping[str, Any]) -> None:
        if config.get('general_backend') not in ('json_cli', 'srt_cli'):
            raise ConfigurationError(
                f"Unsupported general_backend '{config.get('general_backend')}'. Choose 'json_cli' or 'srt_cli'."
            )
        if config.get('specialized_mode') not in ('process', 'inprocess'):
            raise ConfigurationError(
                f"Unsupported specialized_mode '{config.get('specialized_mode')}'. Choose 'process' or 'inprocess'."
            )
        timeout = config.get('transcription_timeout_seconds')
        if timeout is not None and (isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0):
            raise ConfigurationError(f"transcription_timeout_seconds must be a positive number, got {timeout!r}")
        max_concurrent = config.get('max_concurrent_transcriptions')
        if isinstance(max_concurrent, bool) or not isinstance(max_concurrent, int) or max_concurrent < 1:
            raise ConfigurationError(f"max_concurrent_transcriptions must be a positive integer, got {max_concurrent!r}")
        quiet_loggers = config.get('quiet_loggers')
        if not isinstance(quiet_loggers, (list, tuple)) or not all(isinstance(name, str) for name in quiet_loggers):
            raise ConfigurationError(f"quiet_loggers must be a list of logger names, got {quiet_loggers!r}")
