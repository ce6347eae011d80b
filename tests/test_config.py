"""Tests for configuration loading."""

import os

import yaml


class TestLoadConfig:
    """Tests for load_config."""

    def test_defaults_without_file(self):
        from png2vector.config import load_config

        config = load_config()

        assert config.simplify.base_epsilon == 2.0
        assert config.cleanup.base_area_min == 100.0
        assert config.request.default_threshold == 128
        assert config.ai.timeout_seconds == 30.0

    def test_missing_path_falls_back_to_defaults(self, temp_dir):
        from png2vector.config import load_config

        config = load_config(os.path.join(temp_dir, "absent.yaml"))

        assert config.export.stroke_color == "black"

    def test_partial_yaml_merged(self, temp_dir):
        from png2vector.config import load_config

        path = os.path.join(temp_dir, "config.yaml")
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump({
                "simplify": {"base_epsilon": 3.5},
                "export": {"minimal_dxf": True, "unknown_key": 1},
                "not_a_section": {"x": 1},
            }, f)

        config = load_config(path)

        assert config.simplify.base_epsilon == 3.5
        assert config.simplify.min_epsilon == 0.1
        assert config.export.minimal_dxf is True
        assert not hasattr(config.export, "unknown_key")

    def test_empty_yaml(self, temp_dir):
        from png2vector.config import load_config

        path = os.path.join(temp_dir, "empty.yaml")
        open(path, "w").close()

        assert load_config(path).cleanup.grid_size == 0.001


class TestSaveDefaultConfig:
    """Tests for save_default_config."""

    def test_round_trip(self, temp_dir):
        from png2vector.config import PipelineConfig, load_config, save_default_config

        path = os.path.join(temp_dir, "defaults.yaml")
        save_default_config(path)

        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)

        assert set(data) == {"preprocess", "simplify", "cleanup", "export", "ai", "request", "tracing", "debug"}
        assert load_config(path) == PipelineConfig()
