"""
Tests for localization_merge.py.
Covers String Catalog and AppShortcuts.strings merging and idempotency.
"""

import json
import sys
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "src"))

from intent_config import parse_config
from localization_merge import (
    extract_localizable_strings,
    extract_phrases,
    generate_catalog,
    generate_phrase_table,
    load_catalog,
    merge_catalog,
    merge_phrase_table,
    normalize_phrase,
)

_CONFIG = parse_config({
    "localization": True,
    "shortcuts": [
        {
            "identifier": "startTimer",
            "title": "Start Timer",
            "description": "Starts a new timer",
            "phrases": ["Start timer", "Begin tracking in \\(.applicationName)"],
            "stateDialogs": [
                {"stateKey": "timerRunning", "showWhen": True, "message": "Already running"},
            ],
        },
        {
            "identifier": "addTask",
            "title": "Add Task",
            "phrases": ["Add a task"],
            "parameters": [
                {"name": "taskName", "title": "Task Name", "type": "string",
                 "description": "Name of the task"},
            ],
        },
    ],
})


def _entry(value, lang="en"):
    return {"localizations": {lang: {"stringUnit": {"state": "translated", "value": value}}}}


class TestExtractLocalizableStrings(unittest.TestCase):

    def test_keys_in_order(self):
        strings = extract_localizable_strings(_CONFIG)
        self.assertEqual(list(strings), [
            "startTimer.title",
            "startTimer.description",
            "startTimer.stateDialogs.0.message",
            "addTask.title",
            "addTask.parameters.0.title",
            "addTask.parameters.0.description",
            "addTask.parameters.0.prompt",
            "system.error.appGroupFailed",
            "system.timeout",
        ])

    def test_values(self):
        strings = extract_localizable_strings(_CONFIG)
        self.assertEqual(strings["addTask.parameters.0.prompt"], "What task name?")
        self.assertEqual(strings["system.error.appGroupFailed"], "Failed to communicate with app")
        self.assertEqual(strings["system.timeout"], "Done")


class TestPhrases(unittest.TestCase):

    def test_application_name_appended(self):
        self.assertEqual(normalize_phrase("Start timer"), "Start timer in ${applicationName}")

    def test_swift_interpolation_rewritten(self):
        self.assertEqual(
            normalize_phrase("Begin tracking in \\(.applicationName)"),
            "Begin tracking in ${applicationName}",
        )

    def test_unescaped_interpolation_rewritten(self):
        self.assertEqual(
            normalize_phrase("Open (.applicationName)"),
            "Open ${applicationName}",
        )

    def test_bare_word_gets_token(self):
        self.assertEqual(
            normalize_phrase("Ask applicationName"),
            "Ask applicationName in ${applicationName}",
        )

    def test_token_already_present(self):
        self.assertEqual(
            normalize_phrase("Open ${applicationName}"),
            "Open ${applicationName}",
        )

    def test_extract_phrases_config_order(self):
        self.assertEqual(extract_phrases(_CONFIG), [
            "Start timer in ${applicationName}",
            "Begin tracking in ${applicationName}",
            "Add a task in ${applicationName}",
        ])


class TestMergeCatalog(unittest.TestCase):

    def test_fresh_catalog(self):
        catalog = json.loads(generate_catalog({"a.title": "A"}))
        self.assertEqual(catalog["sourceLanguage"], "en")
        self.assertEqual(catalog["version"], "1.0")
        self.assertEqual(catalog["strings"]["a.title"], {
            "extractionState": "manual",
            "localizations": {"en": {"stringUnit": {"state": "translated", "value": "A"}}},
        })

    def test_top_level_key_order(self):
        text = merge_catalog({"a": "A"}, None)
        self.assertEqual(list(json.loads(text)), ["sourceLanguage", "strings", "version"])
        self.assertTrue(text.startswith('{\n  "sourceLanguage": "en"'))

    def test_translations_preserved_and_source_refreshed(self):
        existing = {
            "sourceLanguage": "en",
            "strings": {
                "startTimer.title": {
                    "extractionState": "manual",
                    "localizations": {
                        "en": {"stringUnit": {"state": "translated", "value": "Old"}},
                        "pl": {"stringUnit": {"state": "translated", "value": "Uruchom"}},
                    },
                },
            },
            "version": "1.0",
        }
        merged = json.loads(merge_catalog({"startTimer.title": "Start Timer"}, json.dumps(existing)))
        locs = merged["strings"]["startTimer.title"]["localizations"]
        self.assertEqual(locs["en"]["stringUnit"]["value"], "Start Timer")
        self.assertEqual(locs["pl"]["stringUnit"]["value"], "Uruchom")
        self.assertEqual(merged["strings"]["startTimer.title"]["extractionState"], "manual")

    def test_obsolete_keys_retained(self):
        existing = json.dumps({"sourceLanguage": "en", "strings": {"gone.title": _entry("Gone")}, "version": "1.0"})
        merged = json.loads(merge_catalog({"new.title": "New"}, existing))
        self.assertEqual(list(merged["strings"]), ["gone.title", "new.title"])

    def test_existing_metadata_preserved(self):
        existing = json.dumps({"sourceLanguage": "de", "strings": {}, "version": "2.0"})
        merged = json.loads(merge_catalog({"a": "A"}, existing))
        self.assertEqual(merged["sourceLanguage"], "de")
        self.assertEqual(merged["version"], "2.0")

    def test_entry_without_localizations_gets_source(self):
        existing = json.dumps({"sourceLanguage": "en", "strings": {"a": {}}, "version": "1.0"})
        merged = json.loads(merge_catalog({"a": "A"}, existing))
        self.assertEqual(merged["strings"]["a"], {"localizations": _entry("A")["localizations"]})

    def test_unicode_not_escaped(self):
        text = merge_catalog({"a": "Zażółć"}, None)
        self.assertIn("Zażółć", text)

    def test_corrupt_catalog_starts_fresh(self):
        with self.assertLogs("localization_merge", level="WARNING"):
            merged = json.loads(merge_catalog({"a": "A"}, "{not json"))
        self.assertEqual(list(merged["strings"]), ["a"])

    def test_non_object_root_starts_fresh(self):
        with self.assertLogs("localization_merge", level="WARNING"):
            merged = json.loads(merge_catalog({"a": "A"}, "[1, 2]"))
        self.assertEqual(merged["version"], "1.0")

    def test_merge_is_idempotent(self):
        strings = extract_localizable_strings(_CONFIG)
        once = merge_catalog(strings, None)
        self.assertEqual(merge_catalog(strings, once), once)

    def test_load_catalog(self):
        self.assertIsNone(load_catalog(None))
        self.assertIsNone(load_catalog(""))
        self.assertIsNone(load_catalog("nope"))
        self.assertEqual(load_catalog('{"strings": {}}'), {"strings": {}})


class TestMergePhraseTable(unittest.TestCase):

    def test_identity_table(self):
        self.assertEqual(
            generate_phrase_table(["Start timer in ${applicationName}"]),
            '"Start timer in ${applicationName}" = "Start timer in ${applicationName}";',
        )

    def test_existing_translation_kept(self):
        existing = '"Start timer in ${applicationName}" = "Uruchom timer w ${applicationName}";'
        merged = merge_phrase_table(
            ["Start timer in ${applicationName}", "Stop timer in ${applicationName}"],
            existing,
        )
        self.assertEqual(merged.split("\n"), [
            existing,
            '"Stop timer in ${applicationName}" = "Stop timer in ${applicationName}";',
        ])

    def test_obsolete_lines_kept_in_order(self):
        existing = '"b" = "B";\n"a" = "A";'
        merged = merge_phrase_table(["c"], existing)
        self.assertEqual(merged, '"b" = "B";\n"a" = "A";\n"c" = "c";')

    def test_malformed_lines_dropped(self):
        existing = '/* comment */\n"ok" = "OK";\ngarbage\n\n"unterminated = "x";'
        self.assertEqual(merge_phrase_table([], existing), '"ok" = "OK";')

    def test_duplicate_lines_collapse(self):
        existing = '"a" = "A";\n"a" = "A";\n"a" = "Other";'
        self.assertEqual(merge_phrase_table(["a"], existing), '"a" = "A";')

    def test_repeated_new_phrase_written_once(self):
        self.assertEqual(merge_phrase_table(["A", "A"], None), '"A" = "A";')

    def test_escaped_quotes_in_key(self):
        existing = '"Say \\"hi\\"" = "Powiedz \\"cześć\\"";'
        merged = merge_phrase_table(['Say "hi"'], existing)
        self.assertEqual(merged, existing)

    def test_merge_is_idempotent(self):
        phrases = extract_phrases(_CONFIG)
        once = merge_phrase_table(phrases, None)
        self.assertEqual(merge_phrase_table(phrases, once), once)

    def test_empty(self):
        self.assertEqual(merge_phrase_table([], None), "")


if __name__ == "__main__":
    unittest.main()
