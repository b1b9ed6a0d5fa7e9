"""
Centralized Configuration Management for RadioCity

This module provides a unified interface for loading and accessing
engine configuration from YAML files.
"""

import os
import yaml
from pathlib import Path
from typing import Optional
from dataclasses import dataclass, field, asdict

from . import constants


@dataclass
class RayTracingConfig:
    """Configuration for the ray propagation engine"""

    max_bounces: int = constants.MAX_BOUNCES
    min_power_dbm: float = constants.MIN_POWER_DBM
    max_range_m: float = constants.MAX_RAY_RANGE_M
    origin_offset_m: float = constants.RAY_ORIGIN_OFFSET_M
    bounce_offset_m: float = constants.BOUNCE_OFFSET_M

    # Ray budget scaling with transmitter count
    base_rays: int = constants.BASE_RAYS_PER_TX
    min_rays: int = constants.MIN_RAYS_PER_TX
    rays_decrement: int = constants.RAYS_DECREMENT_PER_TX

    # Background rebuild workers
    rebuild_workers: int = 1

    def rays_per_transmitter(self, tx_count: int) -> int:
        """Ray count per transmitter, shrinking as transmitters are added"""
        extra = max(0, tx_count - 1)
        return max(self.min_rays, self.base_rays - extra * self.rays_decrement)


@dataclass
class ProbeConfig:
    """Configuration for the point probe"""

    obstruction_penalty_db: float = constants.OBSTRUCTION_PENALTY_DB
    los_clearance_m: float = constants.LOS_CLEARANCE_M
    strong_signal_dbm: float = constants.STRONG_SIGNAL_DBM
    handover_margin_db: float = constants.HANDOVER_MARGIN_DB
    softmax_temperature: float = constants.SOFTMAX_TEMPERATURE


@dataclass
class InterferenceConfig:
    """Configuration for the interference field evaluator"""

    max_transmitters: int = constants.MAX_FIELD_TRANSMITTERS
    spatial_scale: float = constants.FIELD_SPATIAL_SCALE
    phase_time_scale: float = constants.FIELD_PHASE_TIME_SCALE
    intensity_scale: float = constants.FIELD_INTENSITY_SCALE
    plane_offset_m: float = constants.FIELD_PLANE_OFFSET_M


@dataclass
class DriveTestConfig:
    """Configuration for drive-test sampling and the probe vehicle"""

    step_m: float = constants.DRIVE_TEST_STEP_M
    probe_hz: float = constants.DRIVE_PROBE_HZ
    vehicle_speed_mps: float = constants.PROBE_VEHICLE_SPEED_MPS
    vehicle_lift_m: float = constants.PROBE_VEHICLE_LIFT_M

    @property
    def probe_interval_s(self) -> float:
        """Minimum interval between consecutive vehicle probes"""
        return 1.0 / self.probe_hz if self.probe_hz > 0 else 0.0


@dataclass
class ExplanationConfig:
    """Configuration for the external explanation service"""

    endpoint_url: str = "http://localhost:3000/api/explain-rf"
    timeout_sec: float = 30.0
    enabled: bool = True


@dataclass
class LoggingConfig:
    """Logging configuration"""

    level: str = "INFO"
    json_format: bool = True
    log_file: Optional[str] = None


@dataclass
class RadioCityConfig:
    """Master configuration for the RadioCity engine"""

    ray_tracing: RayTracingConfig = field(default_factory=RayTracingConfig)
    probe: ProbeConfig = field(default_factory=ProbeConfig)
    interference: InterferenceConfig = field(default_factory=InterferenceConfig)
    drive_test: DriveTestConfig = field(default_factory=DriveTestConfig)
    explanation: ExplanationConfig = field(default_factory=ExplanationConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, config_dict: dict) -> 'RadioCityConfig':
        """Build configuration from a plain dictionary"""
        config_dict = config_dict or {}
        return cls(
            ray_tracing=RayTracingConfig(**config_dict.get('ray_tracing', {})),
            probe=ProbeConfig(**config_dict.get('probe', {})),
            interference=InterferenceConfig(**config_dict.get('interference', {})),
            drive_test=DriveTestConfig(**config_dict.get('drive_test', {})),
            explanation=ExplanationConfig(**config_dict.get('explanation', {})),
            logging=LoggingConfig(**config_dict.get('logging', {})),
        )

    @classmethod
    def from_yaml(cls, yaml_path: str) -> 'RadioCityConfig':
        """Load configuration from YAML file"""
        with open(yaml_path, 'r') as f:
            config_dict = yaml.safe_load(f)

        return cls.from_dict(config_dict)

    def to_yaml(self, yaml_path: str) -> None:
        """Save configuration to YAML file"""
        with open(yaml_path, 'w') as f:
            yaml.dump(asdict(self), f, default_flow_style=False)


def get_config(config_path: Optional[str] = None) -> RadioCityConfig:
    """
    Get engine configuration

    Priority:
    1. Provided config_path
    2. RADIOCITY_CONFIG environment variable
    3. config/radiocity.yml
    4. Default configuration
    """
    if config_path is None:
        config_path = os.getenv('RADIOCITY_CONFIG')

    if config_path is None:
        default_paths = [
            Path(__file__).parent.parent.parent / 'config' / 'radiocity.yml',
            Path('config/radiocity.yml')
        ]

        for path in default_paths:
            if path.exists():
                config_path = str(path)
                break

    if config_path and Path(config_path).exists():
        return RadioCityConfig.from_yaml(config_path)

    return RadioCityConfig()
