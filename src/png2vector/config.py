"""
Configuration management for png2vector.

Loads YAML configuration with sensible defaults for all pipeline stages.
Per-request options (epsilon, minimum area, threshold) are derived from
these values by the orchestrator.
"""

import os
from dataclasses import asdict, dataclass, field, fields, is_dataclass

import yaml


@dataclass
class PreprocessConfig:
    """Configuration for raster preprocessing."""
    blur_radius: float = 0.0  # 0 disables the Gaussian pass
    morph_iterations: int = 1  # closing iterations, 0 disables


@dataclass
class SimplifyConfig:
    """Configuration for Douglas-Peucker simplification."""
    base_epsilon: float = 2.0
    min_epsilon: float = 0.1


@dataclass
class CleanupConfig:
    """Configuration for geometry validation and cleanup."""
    base_area_min: float = 100.0
    min_area_floor: float = 1.0
    hole_area_ratio: float = 0.1
    grid_size: float = 0.001
    point_tolerance: float = 0.001


@dataclass
class ExportConfig:
    """Configuration for SVG and DXF export."""
    coordinate_precision: int = 6
    stroke_width: float = 1.0
    stroke_color: str = "black"
    fill_color: str = "white"
    minimal_dxf: bool = False


@dataclass
class AIConfig:
    """Configuration for the optional edge-detection stage."""
    model_path: str = os.path.join("models", "hed.onnx")
    edge_threshold: float = 0.5
    timeout_seconds: float = 30.0


@dataclass
class RequestDefaults:
    """Defaults applied when a request leaves a value unset."""
    default_threshold: int = 128
    default_fidelity: float = 50.0


@dataclass
class TracingConfig:
    """Configuration for runtime tracing."""
    enabled: bool = False
    level: str = "INFO"
    file_path: str = None
    json_output: bool = False


@dataclass
class DebugConfig:
    """Configuration for debug artifact generation."""
    enabled: bool = False
    out_dir: str = None
    max_edge_scale: int = 1600


@dataclass
class PipelineConfig:
    """Complete pipeline configuration."""
    preprocess: PreprocessConfig = field(default_factory=PreprocessConfig)
    simplify: SimplifyConfig = field(default_factory=SimplifyConfig)
    cleanup: CleanupConfig = field(default_factory=CleanupConfig)
    export: ExportConfig = field(default_factory=ExportConfig)
    ai: AIConfig = field(default_factory=AIConfig)
    request: RequestDefaults = field(default_factory=RequestDefaults)
    tracing: TracingConfig = field(default_factory=TracingConfig)
    debug: DebugConfig = field(default_factory=DebugConfig)


def load_config(config_path=None):
    """
    Load configuration from YAML file.

    Falls back to defaults for any missing values.
    """
    config = PipelineConfig()

    if config_path and os.path.exists(config_path):
        with open(config_path, "r", encoding="utf-8") as f:
            yaml_data = yaml.safe_load(f) or {}

        config = _merge_config(config, yaml_data)

    return config


def _merge_config(config, yaml_data):
    """Merge YAML data into config dataclass, ignoring unknown keys."""
    for section in fields(config):
        values = yaml_data.get(section.name)
        if not isinstance(values, dict):
            continue

        target = getattr(config, section.name)
        if not is_dataclass(target):
            continue

        for key, value in values.items():
            if hasattr(target, key):
                setattr(target, key, value)

    return config


def save_default_config(path):
    """Save default configuration to YAML file for reference."""
    yaml_data = asdict(PipelineConfig())

    with open(path, "w", encoding="utf-8") as f:
        yaml.dump(yaml_data, f, default_flow_style=False, sort_keys=False)
