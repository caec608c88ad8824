#!/usr/bin/env python3
"""
Build settings for InkSite.

Settings come from the first of inksite.yml, inksite.yaml or inksite.json in
the site's input directory, layered over ``DEFAULT_SETTINGS``; command-line
flags are layered over both. Site variables such as ``$(site.url)`` are not
settings and stay in variables.txt.
"""

import os
import json
import yaml
from typing import Dict, Any, Optional

YAML_EXTENSIONS = ('.yml', '.yaml')
JSON_EXTENSIONS = ('.json',)

SAMPLE_YAML = """# InkSite Configuration File
# Site variables such as $(site.url) live in variables.txt

# Build settings
output: _public
sitemap: true  # needs $(site.url) in variables.txt
minify: false

# Development settings
include_debug: false
watch: false
serve: false
port: 5001

# Logging
log_dir: logs
"""


class InkSiteSettings:
    """Load and merge InkSite build settings."""

    DEFAULT_SETTINGS = {
        'output': None,
        'sitemap': True,
        'include_debug': None,
        'minify': False,
        'watch': False,
        'serve': False,
        'port': 5001,
        'log_dir': 'logs',
    }

    # Searched in this order; the first one present wins.
    CONFIG_FILES = ['inksite.yml', 'inksite.yaml', 'inksite.json']

    def __init__(self, config_dir: str = None):
        self.config_dir = config_dir or os.getcwd()
        self.settings = self.DEFAULT_SETTINGS.copy()
        self.config_file_path = None

    def load_settings(self) -> Dict[str, Any]:
        """Apply the config file, if any, over the defaults.

        A config file that cannot be read or parsed is reported and the
        defaults are kept.
        """
        config_file = self._find_config_file()
        if not config_file:
            return self.settings.copy()

        self.config_file_path = config_file
        try:
            loaded_settings = self._load_config_file(config_file)
        except (ValueError, IOError) as e:
            print(f"Warning: Failed to load config file {config_file}: {e}")
        else:
            self.settings.update(loaded_settings)
            print(f"Loaded configuration from: {os.path.relpath(config_file)}")

        return self.settings.copy()

    def _find_config_file(self) -> Optional[str]:
        for filename in self.CONFIG_FILES:
            config_path = os.path.join(self.config_dir, filename)
            if os.path.exists(config_path):
                return config_path
        return None

    def _load_config_file(self, config_path: str) -> Dict[str, Any]:
        """Parse *config_path* as YAML or JSON; it must hold a mapping."""
        file_ext = os.path.splitext(config_path)[1].lower()
        if file_ext not in YAML_EXTENSIONS + JSON_EXTENSIONS:
            raise ValueError(f"Unsupported config file format: {file_ext}")

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                loaded = yaml.safe_load(f) if file_ext in YAML_EXTENSIONS else json.load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file {config_path}: {e}")
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in configuration file {config_path}: {e}")
        except (IOError, OSError, UnicodeDecodeError) as e:
            raise IOError(f"Error reading configuration file {config_path}: {e}")

        if loaded is None:
            return {}
        if not isinstance(loaded, dict):
            raise ValueError(f"Configuration file {config_path} must contain a mapping")

        unknown = sorted(set(loaded) - set(self.DEFAULT_SETTINGS))
        if unknown:
            print(f"Warning: Unknown settings in {config_path}: {', '.join(unknown)}")
        return loaded

    def create_sample_config(self, file_format: str = 'yml') -> str:
        """Write ``inksite.<file_format>`` with the sample settings; returns its path."""
        if '.' + file_format not in YAML_EXTENSIONS + JSON_EXTENSIONS:
            raise ValueError(f"Unsupported config file format: {file_format}")

        config_path = os.path.join(self.config_dir, f'inksite.{file_format}')
        try:
            with open(config_path, 'w', encoding='utf-8') as f:
                if file_format == 'json':
                    json.dump(yaml.safe_load(SAMPLE_YAML), f, indent=2)
                else:
                    f.write(SAMPLE_YAML)
        except PermissionError:
            raise PermissionError(f"Permission denied creating configuration file: {config_path}")
        except (IOError, OSError) as e:
            raise IOError(f"Error writing configuration file {config_path}: {e}")

        return config_path

    def merge_with_args(self, args_dict: Dict[str, Any]) -> Dict[str, Any]:
        """Layer the non-None command-line values over the loaded settings."""
        merged = self.settings.copy()
        merged.update({key: value for key, value in args_dict.items() if value is not None})

        # Debug includes default to on while developing with --watch --serve
        if merged.get('include_debug') is None:
            merged['include_debug'] = bool(merged.get('watch') and merged.get('serve'))

        return merged
