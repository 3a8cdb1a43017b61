from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
import yaml

from .cache.cache_config import CacheConfig
from .errors import ConfigError
from .utils.logging import get_logger

logger = get_logger(__name__)

MODES = {
    0: "physical",
    1: "virtual",
    2: "predictive",
    3: "lru",
}


@dataclass
class SimConfig:
    """Lease cache simulator configuration."""
    # Inputs
    trace: str = ""
    lease_table: str = ""

    # Config file
    config_file: str = ""

    # 0 physical, 1 virtual, 2 virtual with prediction, 3 LRU baseline
    mode: int = 0

    # Cache geometry
    associativity: int = 128
    offset_bits: int = 2
    set_bits: int = 7
    cache_size: int = 65536

    # Lease selection and prediction
    seed: int = 0
    default_lease: int = 16

    # Reporting
    report_dir: str = "out/default_run"
    dump_state: str = ""
    coverage: bool = False

    @property
    def mode_name(self) -> str:
        return MODES.get(self.mode, f"unknown({self.mode})")

    def cache_config(self) -> CacheConfig:
        """Builds the validated cache geometry."""
        return CacheConfig(
            associativity=self.associativity,
            offset_bits=self.offset_bits,
            set_bits=self.set_bits,
            cache_size=self.cache_size,
        )

    def validate(self) -> CacheConfig:
        """Checks mode and geometry, returning the cache geometry."""
        if isinstance(self.mode, bool) or self.mode not in MODES:
            raise ConfigError(f"Unknown mode {self.mode!r}; expected one of {sorted(MODES)}.")
        if self.default_lease < 0:
            raise ConfigError("Default lease must not be negative.")
        return self.cache_config()

    def update_from_yaml(self, yaml_path: str):
        """Updates config fields from a YAML file."""
        with open(yaml_path, 'r') as f:
            yaml_config = yaml.safe_load(f) or {}
        if not isinstance(yaml_config, dict):
            raise ConfigError(f"Config file {yaml_path} must contain a mapping.")
        for key, value in yaml_config.items():
            if hasattr(self, key):
                setattr(self, key, value)
            else:
                logger.warning("Ignoring unknown config key '%s' in %s", key, yaml_path)

    @classmethod
    def from_args(cls, args) -> SimConfig:
        """Factory method to create a SimConfig from parsed argparse arguments."""
        config = cls()

        # 1. Load from YAML config file if provided
        if hasattr(args, 'config') and args.config:
            config.config_file = args.config
            if Path(config.config_file).exists():
                config.update_from_yaml(config.config_file)
            else:
                logger.warning("Config file %s not found, using defaults.", config.config_file)

        # 2. Override with command-line arguments
        arg_dict = vars(args)
        for key, value in arg_dict.items():
            if key == 'config':
                continue
            if value is not None and hasattr(config, key):
                setattr(config, key, value)

        return config
