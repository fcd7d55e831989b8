import os
import yaml
from pathlib import Path
from typing import Dict, Any, Optional

from .models import AppConfig
from .provision.builder import BuildOptions
from .provision.models import ProvisionPaths

DEFAULT_CONFIG_FILE = "clamlocal.yaml"
ENV_PREFIX = "CLAMLOCAL_"
SECTIONS = ("paths", "build", "dependencies", "verify")
LIST_KEYS = {
    "extra_cmake_args",
    "required",
    "optional",
    "expected_binaries",
    "system_bin_dirs",
    "system_lib_dirs",
}


class ConfigManager:
    def __init__(self, config_path: Optional[str] = None):
        self.explicit = config_path is not None
        self.config_path = Path(config_path or DEFAULT_CONFIG_FILE)
        self.config: Optional[AppConfig] = None
        self.load_config()

    def load_config(self) -> AppConfig:
        """Load configuration from file, environment and defaults"""
        config_data: Dict[str, Any] = {}
        if self.config_path.exists():
            with open(self.config_path, 'r') as f:
                config_data = yaml.safe_load(f) or {}
        elif self.explicit:
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        # Merge with environment variables
        config_data = self._merge_env_vars(config_data)

        self.config = AppConfig(**config_data)
        return self.config

    def _merge_env_vars(self, config_data: Dict[str, Any]) -> Dict[str, Any]:
        """Merge environment variables with configuration"""
        for key, value in os.environ.items():
            if not key.startswith(ENV_PREFIX):
                continue
            config_key = key[len(ENV_PREFIX):].lower()

            # Handle nested keys (e.g., CLAMLOCAL_BUILD_JOBS)
            section, _, nested_key = config_key.partition('_')
            if section in SECTIONS and nested_key:
                if nested_key in LIST_KEYS:
                    value = [v for v in value.split(',') if v]
                section_data = config_data.get(section) or {}
                section_data[nested_key] = value
                config_data[section] = section_data
            elif config_key in AppConfig.model_fields and config_key not in SECTIONS:
                config_data[config_key] = value

        return config_data

    def get_config(self) -> AppConfig:
        """Get current configuration"""
        if self.config is None:
            self.load_config()
        return self.config

    def get_section(self, section: str) -> Dict[str, Any]:
        """Get a specific configuration section as a dict"""
        value = getattr(self.get_config(), section, {})
        if hasattr(value, "model_dump"):
            return value.model_dump()
        return value

    def save_config(self, path: Optional[Path] = None):
        """Save configuration to file"""
        if self.config is None:
            return

        config_dict = self.config.model_dump(mode="json", exclude_none=True)

        with open(path or self.config_path, 'w') as f:
            yaml.safe_dump(config_dict, f, default_flow_style=False, sort_keys=False)

    def build_paths(
        self,
        project_root: Optional[str] = None,
        prefix: Optional[str] = None,
        database_dir: Optional[str] = None,
    ) -> ProvisionPaths:
        """Resolve the filesystem layout from the paths section.

        Explicit arguments win over the configured values.
        """
        paths = self.get_config().paths

        def _opt(value: Optional[str]) -> Optional[Path]:
            return Path(value) if value else None

        return ProvisionPaths.for_root(
            Path(project_root or paths.project_root),
            source_dir=_opt(paths.source_dir),
            prefix=_opt(prefix or paths.prefix),
            build_dir=_opt(paths.build_dir),
            database_dir=_opt(database_dir or paths.database_dir),
        )

    def build_options(self, **overrides: Any) -> BuildOptions:
        options = self.get_config().build
        updates = {k: v for k, v in overrides.items() if v is not None}
        return options.model_copy(update=updates) if updates else options.model_copy()
