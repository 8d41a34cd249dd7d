"""Tests for type_surface.py: TypeScript declaration output."""

import sys
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "src"))

from intent_config import ShortcutConfig, parse_config
from type_surface import generate_type_surface, generate_variant, ts_type

_CONFIG = parse_config({
    "shortcuts": [
        {"identifier": "startTimer", "title": "Start Timer", "phrases": ["Start timer"]},
        {
            "identifier": "addTask",
            "title": "Add Task",
            "phrases": ["Add a task"],
            "parameters": [
                {"name": "taskName", "title": "Task Name", "type": "string", "optional": False},
                {"name": "dueDate", "title": "Due Date", "type": "date"},
                {"name": "priority", "title": "Priority", "type": "number"},
                {"name": "urgent", "title": "Urgent", "type": "boolean", "optional": True},
            ],
        },
    ],
})


class TestVariants(unittest.TestCase):

    def test_ts_types(self):
        self.assertEqual(
            [ts_type(t) for t in ("string", "number", "boolean", "date")],
            ["string", "number", "boolean", "Date"],
        )

    def test_variant_without_parameters(self):
        self.assertEqual(
            generate_variant(_CONFIG.get("startTimer")),
            "  | {\n"
            "      identifier: 'startTimer';\n"
            "      nonce: string;\n"
            "      parameters?: never;\n"
            "      userConfirmed?: boolean;\n"
            "    }",
        )

    def test_variant_with_parameters(self):
        self.assertEqual(
            generate_variant(_CONFIG.get("addTask")),
            "  | {\n"
            "      identifier: 'addTask';\n"
            "      nonce: string;\n"
            "      parameters: {\n"
            "    taskName: string;\n"
            "    dueDate?: Date;\n"
            "    priority?: number;\n"
            "    urgent?: boolean;\n"
            "      };\n"
            "      userConfirmed?: boolean;\n"
            "    }",
        )


class TestTypeSurface(unittest.TestCase):

    def setUp(self):
        self.output = generate_type_surface(_CONFIG)

    def test_header(self):
        self.assertTrue(self.output.startswith("// AUTO-GENERATED - DO NOT EDIT\n"))
        self.assertIn("// Generated from shortcuts.config.yaml\n", self.output)

    def test_source_name(self):
        output = generate_type_surface(_CONFIG, source_name="custom.yaml")
        self.assertIn("// Generated from custom.yaml\n", output)

    def test_union_in_config_order(self):
        self.assertIn("export type ShortcutInvocation =\n  | {\n      identifier: 'startTimer';", self.output)
        self.assertLess(self.output.index("'startTimer'"), self.output.index("'addTask'"))
        self.assertIn("    }\n  | {\n      identifier: 'addTask';", self.output)
        self.assertIn("userConfirmed?: boolean;\n    };\n", self.output)

    def test_callback_types(self):
        self.assertIn(
            "export type RespondCallback = (response?: { message?: string }) => void;",
            self.output,
        )
        self.assertIn(
            "export type ShortcutListener = (\n"
            "  shortcut: ShortcutInvocation,\n"
            "  respond: RespondCallback\n"
            ") => void | Promise<void>;\n",
            self.output,
        )

    def test_no_format_placeholders_left(self):
        self.assertNotIn("{variants}", self.output)
        self.assertNotIn("{{", self.output)

    def test_empty_config_is_never(self):
        output = generate_type_surface(ShortcutConfig(shortcuts=[]))
        self.assertIn("export type ShortcutInvocation =\n  never;\n", output)


if __name__ == "__main__":
    unittest.main()
