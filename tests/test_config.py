"""Tests for YAML configuration loading and validation."""

import pytest
import yaml

from gesture_pilot.actions import ActionKind
from gesture_pilot.config import PilotConfig, config_from_dict, load_config, save_config
from gesture_pilot.errors import ConfigError
from gesture_pilot.gestures import GestureLabel


def write_yaml(path, data):
    path.write_text(yaml.safe_dump(data))
    return path


class TestDefaults:
    def test_no_path_gives_defaults(self):
        config = load_config()
        assert config.recognition.hold_threshold == 0.3
        assert config.dispatch.cooldown == 2.0
        assert config.enter_gesture == GestureLabel.OPEN_PALM
        assert config.exit_gesture == GestureLabel.POINTING_UP
        assert config.viewport.width == 1920
        assert config.recognition.smoothing == 0.4
        assert config.broadcast.listen is False

    def test_default_command_table(self):
        table = PilotConfig().command_table()
        assert table.lookup(GestureLabel.PEACE_SIGN).payload == 2

    def test_broadcast_kinds(self):
        assert PilotConfig().broadcast_kinds == [ActionKind.SWITCH_SLOT, ActionKind.KEY]


class TestLoad:
    def test_partial_file_merges_over_defaults(self, tmp_path):
        path = write_yaml(tmp_path / "pilot.yml", {
            "dispatch": {"cooldown": 1.0, "input_cooldown": 0.25},
            "pointer": {"viewport": [1280, 720]},
        })
        config = load_config(path)
        assert config.dispatch.cooldown == 1.0
        assert config.dispatch.input_cooldown == 0.25
        assert config.pointer.viewport == (1280, 720)
        assert config.recognition.hold_threshold == 0.3

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yml"
        path.write_text("")
        assert load_config(path).dispatch.cooldown == 2.0

    def test_commands_replace_table(self, tmp_path):
        path = write_yaml(tmp_path / "pilot.yml", {
            "commands": {"PEACE_SIGN": {"kind": "launch", "payload": "code"}},
        })
        table = load_config(path).command_table()
        assert table.lookup(GestureLabel.PEACE_SIGN).kind == ActionKind.LAUNCH
        assert table.lookup(GestureLabel.THUMBS_UP) is None

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="Cannot read"):
            load_config(tmp_path / "nope.yml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yml"
        path.write_text("recognition: [unclosed")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config(path)

    def test_save_and_reload(self, tmp_path):
        config = config_from_dict({"dispatch": {"cooldown": 3.0}})
        path = tmp_path / "out" / "pilot.yml"
        save_config(config, path)
        assert load_config(path).dispatch.cooldown == 3.0


class TestValidation:
    @pytest.mark.parametrize("data", [
        {"recognition": {"hold_threshold": -1}},
        {"recognition": {"smoothing": -0.1}},
        {"recognition": {"smoothing": 1.0}},
        {"recognition": {"exit_gesture": "THUMBS_UP"}},
        {"recognition": {"active_hand": "middle"}},
        {"recognition": {"enter_gesture": "WAVE"}},
        {"recognition": {"enter_gesture": "POINTING_UP"}},
        {"recognition": {"exit_gesture": "UNKNOWN"}},
        {"pointer": {"viewport": [0, 720]}},
        {"pointer": {"viewport": [1280]}},
        {"pointer": {"raycast_factor": -0.5}},
        {"pointer": {"precision_slowdown": 0}},
        {"pointer": {"precision_min_curl": 0.1, "precision_max_curl": 0.05}},
        {"pointer": {"precision_min_fingers": 5}},
        {"dispatch": {"cooldown": -2}},
        {"dispatch": {"input_cooldown": -0.1}},
        {"dispatch": {"cooldown": "fast"}},
        {"automation": {"backend": "applescript"}},
        {"automation": {"slot_key_template": "alt+1"}},
        {"broadcast": {"port": 70000}},
        {"broadcast": {"kinds": ["teleport"]}},
        {"logging": {"level": "LOUD"}},
        {"commands": {"POINTING_UP": {"kind": "click"}}},
        {"commands": {"PEACE_SIGN": {"kind": "switch_slot", "payload": -1}}},
        {"commands": ["PEACE_SIGN"]},
    ])
    def test_invalid_values(self, data):
        with pytest.raises(ConfigError):
            config_from_dict(data)

    def test_unknown_section(self):
        with pytest.raises(ConfigError, match="Unknown configuration sections"):
            config_from_dict({"gestures": {}})

    def test_unknown_key(self):
        with pytest.raises(ConfigError, match="Unknown keys"):
            config_from_dict({"dispatch": {"cooldwn": 1}})

    def test_section_must_be_mapping(self):
        with pytest.raises(ConfigError):
            config_from_dict({"dispatch": [1, 2]})

    def test_root_must_be_mapping(self):
        with pytest.raises(ConfigError):
            config_from_dict(["dispatch"])

    def test_exit_gesture_clash_names_gesture(self):
        with pytest.raises(ConfigError, match="THUMBS_UP"):
            config_from_dict({"recognition": {"exit_gesture": "THUMBS_UP"}})

    def test_exit_gesture_with_own_table(self):
        config = config_from_dict({
            "recognition": {"exit_gesture": "THUMBS_UP"},
            "commands": {"PEACE_SIGN": {"kind": "switch_slot", "payload": 2}},
        })
        table = config.command_table()
        assert table.lookup(GestureLabel.THUMBS_UP) is None
        assert table.exit_gesture == GestureLabel.THUMBS_UP

    def test_empty_commands_kept(self):
        table = config_from_dict({"commands": {}}).command_table()
        assert len(table) == 0

    def test_throw_window_command(self):
        config = config_from_dict({
            "commands": {"FOUR_FINGERS": {"kind": "throw_window", "payload": "right"}},
        })
        action = config.command_table().lookup(GestureLabel.FOUR_FINGERS)
        assert action.kind == ActionKind.KEY
        assert action.payload == "super+shift+Right"
        assert action.label == "THROW RIGHT"

    def test_config_error_is_value_error(self):
        assert issubclass(ConfigError, ValueError)


class TestToDict:
    def test_yaml_safe(self):
        data = PilotConfig().to_dict()
        assert data["pointer"]["viewport"] == [1920, 1080]
        assert "commands" not in data
        yaml.safe_dump(data)
