#!/usr/bin/env python3
"""
Settings loader for the prerenderer.
Supports configuration from prerender.yml, prerender.yaml, or prerender.json files.
"""

import os
import json
import logging
import yaml
from typing import Dict, Any, Optional

from .errors import UsageError


class PrerenderSettings:
    """Load and manage prerender configuration settings."""

    # Default configuration
    DEFAULT_SETTINGS = {
        'pages': 'pages',
        'out_dir': 'dist',
        'partial': False,
        'no_extra_dir': False,
        'parallel': None,
        'client_router': False,
        'strict_duplicate_urls': False,
        'log_file': None,
    }

    BOOLEAN_SETTINGS = ('partial', 'no_extra_dir', 'client_router', 'strict_duplicate_urls')

    # Config file names to look for (in order of preference)
    CONFIG_FILES = ['prerender.yml', 'prerender.yaml', 'prerender.json']

    def __init__(self, config_dir: str = None, config_file: str = None):
        """
        Initialize settings loader.

        Args:
            config_dir: Directory to look for config files. Defaults to current directory.
            config_file: Explicit config file; overrides the lookup in config_dir.
        """
        self.config_dir = config_dir or os.getcwd()
        self.config_file = config_file
        self.settings = self.DEFAULT_SETTINGS.copy()
        self.config_file_path = None
        self.logger = logging.getLogger('Prerender')

    def load_settings(self) -> Dict[str, Any]:
        """
        Load settings from configuration file if it exists.

        Returns:
            Dictionary of configuration settings, including the resolved ``root``
        """
        if self.config_file:
            config_file = os.path.abspath(self.config_file)
            if not os.path.isfile(config_file):
                raise UsageError(
                    f"Could not find the config file `{self.config_file}`. "
                    f"Use the option `config_file='path/to/prerender.yml'`."
                )
        else:
            config_file = self._find_config_file()

        if config_file:
            self.config_file_path = config_file
            loaded_settings = self._load_config_file(config_file)
            if not isinstance(loaded_settings, dict):
                raise UsageError(f"Configuration file {config_file} should contain a mapping of settings.")
            unknown = sorted(set(loaded_settings) - set(self.DEFAULT_SETTINGS))
            if unknown:
                raise UsageError(f"Unknown setting(s) in {config_file}: {', '.join(unknown)}")
            # Merge with defaults, giving preference to loaded settings
            self.settings.update(loaded_settings)
            self.logger.debug(f"Loaded configuration from: {os.path.relpath(config_file)}")
            self.settings['root'] = os.path.dirname(config_file)
        else:
            self.settings['root'] = os.path.abspath(self.config_dir)

        self.validate(self.settings)
        return self.settings.copy()

    def _find_config_file(self) -> Optional[str]:
        """
        Find the first available configuration file.

        Returns:
            Path to config file or None if not found
        """
        for filename in self.CONFIG_FILES:
            config_path = os.path.join(self.config_dir, filename)
            if os.path.exists(config_path):
                return os.path.abspath(config_path)
        return None

    def _load_config_file(self, config_path: str) -> Dict[str, Any]:
        """
        Load configuration from a file.

        Args:
            config_path: Path to the configuration file

        Returns:
            Dictionary of configuration settings
        """
        file_ext = os.path.splitext(config_path)[1].lower()
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                if file_ext in ['.yml', '.yaml']:
                    return yaml.safe_load(f) or {}
                elif file_ext == '.json':
                    return json.load(f) or {}
                else:
                    raise UsageError(f"Unsupported config file format: {file_ext}")
        except PermissionError:
            raise UsageError(f"Permission denied reading configuration file: {config_path}")
        except yaml.YAMLError as e:
            raise UsageError(f"Invalid YAML in configuration file {config_path}: {e}")
        except json.JSONDecodeError as e:
            raise UsageError(f"Invalid JSON in configuration file {config_path}: {e}")

    @classmethod
    def validate(cls, settings: Dict[str, Any]) -> None:
        """Raise UsageError for settings with the wrong type or value."""
        for key in cls.BOOLEAN_SETTINGS:
            if not isinstance(settings.get(key), bool):
                raise UsageError(f"Setting `{key}` should be a boolean.")

        parallel = settings.get('parallel')
        if parallel is not None and (isinstance(parallel, bool) or not isinstance(parallel, int) or parallel < 1):
            raise UsageError(f"Setting `parallel` should be a number `>=1` but we got `{parallel}`.")

        for key in ('pages', 'out_dir'):
            if not isinstance(settings.get(key), str) or not settings[key]:
                raise UsageError(f"Setting `{key}` should be a non-empty string.")
        out_dir = settings['out_dir']
        if '\\' in out_dir:
            raise UsageError("Setting `out_dir` should use forward slashes.")
        if os.path.isabs(out_dir):
            raise UsageError("Setting `out_dir` should be relative to the project root.")
        segments = out_dir.strip('/').split('/')
        if 'client' in segments or 'server' in segments:
            raise UsageError("Setting `out_dir` should not contain a `client` or `server` directory.")

        log_file = settings.get('log_file')
        if log_file is not None and not isinstance(log_file, str):
            raise UsageError("Setting `log_file` should be a string.")

    def create_sample_config(self, file_format: str = 'yml') -> str:
        """
        Create a sample configuration file.

        Args:
            file_format: Format for config file ('yml', 'yaml', or 'json')

        Returns:
            Path to created sample config file
        """
        filename = f'prerender.{file_format}'
        config_path = os.path.join(self.config_dir, filename)

        try:
            with open(config_path, 'w', encoding='utf-8') as f:
                if file_format in ['yml', 'yaml']:
                    f.write("# Prerender Configuration File\n\n")
                    f.write("# Where pages live and where documents are written\n")
                    f.write("pages: pages\n")
                    f.write("out_dir: dist\n\n")
                    f.write("# Write /about as about.html instead of about/index.html\n")
                    f.write("no_extra_dir: false\n\n")
                    f.write("# Silence warnings about pages that were not pre-rendered\n")
                    f.write("partial: false\n\n")
                    f.write("# Maximum number of hooks/renders/writes in flight (default: CPU count)\n")
                    f.write("parallel: null\n\n")
                    f.write("# Emit .pageContext.json files for client-side routing\n")
                    f.write("client_router: false\n\n")
                    f.write("# Fail when two prerender() hooks return the same URL\n")
                    f.write("strict_duplicate_urls: false\n")
                elif file_format == 'json':
                    json.dump(self.DEFAULT_SETTINGS, f, indent=2)
                else:
                    raise UsageError(f"Unsupported config file format: {file_format}")
        except PermissionError:
            raise PermissionError(f"Permission denied creating configuration file: {config_path}")
        except (IOError, OSError) as e:
            raise IOError(f"Error writing configuration file {config_path}: {e}")

        return config_path

    def merge_with_args(self, args_dict: Dict[str, Any]) -> Dict[str, Any]:
        """
        Merge configuration settings with command-line arguments.
        Command-line arguments take precedence over config file settings.

        Args:
            args_dict: Dictionary of command-line arguments

        Returns:
            Merged configuration dictionary
        """
        merged = self.settings.copy()

        # Override with non-None command line arguments
        for key, value in args_dict.items():
            if value is not None and key in merged:
                merged[key] = value

        self.validate(merged)
        return merged
