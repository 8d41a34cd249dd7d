"""Tests for intent_config.py: config loading and validation."""

import json
import os
import sys
import tempfile
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "src"))

import yaml
from intent_config import (
    ConfigError,
    ShortcutConfig,
    load_config,
    parse_config,
)
from paths import EXAMPLE_CONFIG_PATH

_TEST_CONFIG = {
    "appGroupId": "group.com.example.tracker",
    "localization": True,
    "shortcuts": [
        {
            "identifier": "startTimer",
            "title": "Start Timer",
            "phrases": ["Start timer"],
            "systemImageName": "play.circle",
            "stateDialogs": [
                {
                    "stateKey": "timerRunning",
                    "showWhen": True,
                    "message": "Timer ${taskName} is running. Start a new one?",
                },
            ],
        },
        {
            "identifier": "addTask",
            "title": "Add Task",
            "phrases": ["Add a task", "Create todo"],
            "parameters": [
                {"name": "taskName", "title": "Task Name", "type": "string", "optional": False},
                {"name": "dueDate", "title": "Due Date", "type": "date"},
            ],
        },
    ],
}


def _write_test_config(config, suffix=".yaml") -> str:
    """Write config to a temp file and return its path."""
    fd, path = tempfile.mkstemp(suffix=suffix)
    with os.fdopen(fd, "w") as f:
        if suffix == ".json":
            json.dump(config, f)
        else:
            yaml.dump(config, f)
    return path


def _config_with_shortcut(**overrides) -> dict:
    shortcut = {"identifier": "ping", "title": "Ping", "phrases": ["Ping"]}
    shortcut.update(overrides)
    return {"shortcuts": [shortcut]}


class TestLoadConfig(unittest.TestCase):

    def setUp(self):
        self.config_path = _write_test_config(_TEST_CONFIG)

    def tearDown(self):
        os.unlink(self.config_path)

    def test_load_valid_config(self):
        config = load_config(self.config_path)
        self.assertIsInstance(config, ShortcutConfig)
        self.assertEqual(len(config.shortcuts), 2)
        self.assertEqual(config.app_group_id, "group.com.example.tracker")
        self.assertTrue(config.localization)

    def test_shortcut_fields(self):
        config = load_config(self.config_path)
        start = config.get("startTimer")
        self.assertEqual(start.title, "Start Timer")
        self.assertEqual(start.system_image_name, "play.circle")
        self.assertEqual(start.class_name, "StartTimerIntent")
        self.assertIsNone(start.description)

    def test_state_dialog_defaults(self):
        dialog = load_config(self.config_path).get("startTimer").state_dialogs[0]
        self.assertEqual(dialog.state_key, "timerRunning")
        self.assertIs(dialog.show_when, True)
        self.assertTrue(dialog.requires_confirmation)

    def test_parameter_defaults(self):
        add = load_config(self.config_path).get("addTask")
        task, due = add.parameters
        self.assertFalse(task.optional)
        self.assertTrue(due.optional)
        self.assertEqual(due.type, "date")
        self.assertEqual(task.default_prompt, "What task name?")
        self.assertIs(add.parameter("dueDate"), due)
        self.assertIsNone(add.parameter("missing"))

    def test_json_config(self):
        path = _write_test_config(_TEST_CONFIG, suffix=".json")
        try:
            config = load_config(path)
        finally:
            os.unlink(path)
        self.assertEqual([s.identifier for s in config.shortcuts], ["startTimer", "addTask"])

    def test_missing_file(self):
        with self.assertRaises(FileNotFoundError):
            load_config("/nonexistent/shortcuts.config.yaml")

    def test_unparsable_yaml(self):
        fd, path = tempfile.mkstemp(suffix=".yaml")
        with os.fdopen(fd, "w") as f:
            f.write("shortcuts: [unclosed\n")
        try:
            with self.assertRaises(ConfigError):
                load_config(path)
        finally:
            os.unlink(path)

    def test_example_config_loads(self):
        config = load_config(EXAMPLE_CONFIG_PATH)
        self.assertEqual(
            [s.identifier for s in config.shortcuts],
            ["startTimer", "stopTimer", "addTask"],
        )
        self.assertFalse(config.get("stopTimer").has_confirmation_dialogs)
        self.assertTrue(config.get("startTimer").has_confirmation_dialogs)


class TestParseConfig(unittest.TestCase):

    def test_defaults(self):
        config = parse_config(_config_with_shortcut())
        self.assertIsNone(config.app_group_id)
        self.assertFalse(config.localization)
        self.assertEqual(config.shortcuts[0].parameters, [])
        self.assertEqual(config.shortcuts[0].state_dialogs, [])

    def test_snake_case_aliases(self):
        raw = {
            "app_group_id": "group.x",
            "shortcuts": [{
                "identifier": "stop",
                "title": "Stop",
                "phrases": ["Stop"],
                "system_image_name": "stop.circle",
                "state_dialogs": [{
                    "state_key": "running",
                    "show_when": False,
                    "message": "Not running",
                    "requires_confirmation": False,
                }],
            }],
        }
        config = parse_config(raw)
        self.assertEqual(config.app_group_id, "group.x")
        shortcut = config.shortcuts[0]
        self.assertEqual(shortcut.system_image_name, "stop.circle")
        self.assertFalse(shortcut.state_dialogs[0].requires_confirmation)
        self.assertIs(shortcut.state_dialogs[0].show_when, False)

    def test_missing_shortcuts(self):
        with self.assertRaises(ConfigError):
            parse_config({"localization": True})

    def test_not_a_mapping(self):
        with self.assertRaises(ConfigError):
            parse_config(["shortcuts"])
        with self.assertRaises(ConfigError):
            parse_config(None)

    def test_empty_shortcut_list_rejected(self):
        with self.assertRaises(ConfigError) as ctx:
            parse_config({"shortcuts": []})
        self.assertIn("must not be empty", str(ctx.exception))

    def test_duplicate_identifier_rejected(self):
        raw = {"shortcuts": [
            {"identifier": "ping", "title": "Ping", "phrases": ["Ping"]},
            {"identifier": "ping", "title": "Ping again", "phrases": ["Ping again"]},
        ]}
        with self.assertRaises(ConfigError) as ctx:
            parse_config(raw)
        self.assertIn("Duplicate shortcut identifier 'ping'", str(ctx.exception))

    def test_empty_phrases_rejected(self):
        with self.assertRaises(ConfigError):
            parse_config(_config_with_shortcut(phrases=[]))

    def test_unknown_parameter_type(self):
        raw = _config_with_shortcut(parameters=[{"name": "n", "title": "N", "type": "color"}])
        with self.assertRaises(ConfigError):
            parse_config(raw)

    def test_invalid_parameter_name(self):
        raw = _config_with_shortcut(parameters=[{"name": "task-name", "title": "T", "type": "string"}])
        with self.assertRaises(ConfigError):
            parse_config(raw)

    def test_duplicate_parameter_name(self):
        raw = _config_with_shortcut(parameters=[
            {"name": "n", "title": "N", "type": "string"},
            {"name": "n", "title": "N2", "type": "number"},
        ])
        with self.assertRaises(ConfigError):
            parse_config(raw)

    def test_show_when_must_be_scalar(self):
        raw = _config_with_shortcut(stateDialogs=[
            {"stateKey": "s", "showWhen": ["a"], "message": "m"},
        ])
        with self.assertRaises(ConfigError):
            parse_config(raw)

    def test_config_error_is_value_error(self):
        self.assertTrue(issubclass(ConfigError, ValueError))


class TestAppGroupResolution(unittest.TestCase):

    def test_configured_group_wins(self):
        config = parse_config(dict(_config_with_shortcut(), appGroupId="group.fixed"))
        self.assertEqual(config.resolve_app_group_id("com.example.app"), "group.fixed")

    def test_derived_from_bundle_id(self):
        config = parse_config(_config_with_shortcut())
        self.assertEqual(config.resolve_app_group_id("com.example.app"), "group.com.example.app")

    def test_unresolvable(self):
        config = parse_config(_config_with_shortcut())
        with self.assertRaises(ConfigError):
            config.resolve_app_group_id()


if __name__ == "__main__":
    unittest.main()
