"""
IntentBridge CLI: shortcuts.config.yaml → Swift App Intents.

Usage:
    intentbridge generate
    intentbridge generate --config path/to/shortcuts.config.yaml
    intentbridge generate --project-dir ~/code/MyApp --verbose

The generate command:
  1. finds the config (--config, else shortcuts.config.{yaml,yml,json});
     writes a template and stops when there is none
  2. finds the app directory: ios/<App>.xcodeproj → ios/<App>/
  3. writes GeneratedAppIntents.swift (plus Localizable.xcstrings and
     AppShortcuts.strings when localization is on) into the app directory
  4. writes shortcuts.generated.d.ts into src/ (or the project root)

Exit status is 0 on success and 1 on any error.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from artifact_generator import TYPES_FILENAME, generate_into
from intent_config import ConfigError, load_config

CONFIG_CANDIDATES = (
    "shortcuts.config.yaml",
    "shortcuts.config.yml",
    "shortcuts.config.json",
)

CONFIG_TEMPLATE = """\
# Siri Shortcuts configuration
#
# Define your app's shortcuts here. After editing this file, run:
#   intentbridge generate

shortcuts:
  - identifier: exampleAction
    title: Example Action
    phrases:
      - Do example action
      - Run example
      - Example shortcut
    systemImageName: star.circle
    description: An example shortcut - customize this!

# Enable localization support (optional)
# localization: true
"""


def find_config(project_dir: Path) -> Path | None:
    for name in CONFIG_CANDIDATES:
        candidate = project_dir / name
        if candidate.exists():
            return candidate
    return None


def write_config_template(path: Path) -> None:
    path.write_text(CONFIG_TEMPLATE, encoding="utf-8")


def find_app_output_dir(ios_dir: Path) -> tuple[str, Path]:
    """Locate <App>.xcodeproj under ios_dir and return (App, ios_dir/App).

    Raises:
        FileNotFoundError: If ios_dir, the .xcodeproj or the app directory
            is missing.
    """
    if not ios_dir.is_dir():
        raise FileNotFoundError(f"ios directory not found: {ios_dir}")

    projects = sorted(p for p in ios_dir.iterdir() if p.name.endswith(".xcodeproj"))
    if not projects:
        raise FileNotFoundError(f"Could not find .xcodeproj in {ios_dir}")

    app_name = projects[0].name[: -len(".xcodeproj")]
    output_dir = ios_dir / app_name
    if not output_dir.is_dir():
        raise FileNotFoundError(f"App directory not found: {output_dir}")
    return app_name, output_dir


def default_types_path(project_dir: Path) -> Path:
    src_dir = project_dir / "src"
    if src_dir.is_dir():
        return src_dir / TYPES_FILENAME
    return project_dir / TYPES_FILENAME


def _print_next_steps(localized: bool) -> None:
    steps = ["Add GeneratedAppIntents.swift to your Xcode project (if not already added)"]
    if localized:
        steps += [
            "Add Localizable.xcstrings to your Xcode project for translations",
            "Add AppShortcuts.strings for phrase translations",
        ]
    steps += [
        "Enable App Groups capability: group.<your-bundle-id>",
        "Rebuild your app",
    ]
    print("Next steps:")
    for i, step in enumerate(steps, 1):
        print(f"  {i}. {step}")


def cmd_generate(args: argparse.Namespace) -> int:
    project_dir = Path(args.project_dir).resolve()

    if args.config:
        config_path = Path(args.config)
    else:
        config_path = find_config(project_dir)
        if config_path is None:
            template_path = project_dir / CONFIG_CANDIDATES[0]
            try:
                write_config_template(template_path)
            except OSError as e:
                print(f"Error: cannot write {template_path}: {e}", file=sys.stderr)
                return 1
            print(f"  \u2713 Created template: {template_path.name}")
            print()
            print("Next steps:")
            print(f"  1. Edit {template_path.name} to define your shortcuts")
            print("  2. Run: intentbridge generate")
            return 0

    print(f"Reading shortcuts configuration: {config_path}")
    try:
        config = load_config(config_path)
    except (FileNotFoundError, ConfigError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    try:
        if args.output_dir:
            output_dir = Path(args.output_dir)
            if not output_dir.is_dir():
                raise FileNotFoundError(f"Output directory not found: {output_dir}")
        else:
            app_name, output_dir = find_app_output_dir(project_dir / "ios")
            print(f"  \u2713 Found app: {app_name}")
    except FileNotFoundError as e:
        print(f"  \u2717 {e}", file=sys.stderr)
        return 1

    print(f"  \u2713 Found {len(config.shortcuts)} shortcuts")
    if config.localization:
        print("  \u2713 Localization enabled")

    types_path = Path(args.types_path) if args.types_path else default_types_path(project_dir)

    try:
        result, written = generate_into(
            config, output_dir, types_path, source_name=config_path.name
        )
    except OSError as e:
        print(f"Error: cannot write generated files: {e}", file=sys.stderr)
        return 1

    for path in written:
        print(f"  \u2713 Generated: {path}")

    if result.warnings:
        print(f"\n  Warnings ({len(result.warnings)}):")
        for w in result.warnings:
            print(f"    - {w}")

    if result.localized:
        print(f"\n  Localization keys: {len(result.localizable_strings)}")
        print(f"  Phrase keys: {len(result.phrase_list)}")

    print("\nShortcuts generated:")
    for s in config.shortcuts:
        print(f'  - {s.identifier}: "{s.title}"')
        print(f"    Phrases: {', '.join(s.phrases)}")
    print()
    _print_next_steps(result.localized)
    print("\nDone!")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="intentbridge",
        description="Generate Siri App Intents from a shortcuts configuration",
    )
    sub = parser.add_subparsers(dest="command")

    gen = sub.add_parser("generate", help="Generate Swift, localization and type files")
    gen.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to the shortcuts config (default: shortcuts.config.yaml in the project)",
    )
    gen.add_argument(
        "--project-dir",
        type=str,
        default=".",
        help="Project root containing ios/ (default: current directory)",
    )
    gen.add_argument(
        "--output-dir",
        type=str,
        default=None,
        help="Write app files here instead of the discovered ios/<App>/ directory",
    )
    gen.add_argument(
        "--types-path",
        type=str,
        default=None,
        help=f"Where to write {TYPES_FILENAME} (default: src/ or the project root)",
    )
    gen.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging",
    )
    gen.set_defaults(func=cmd_generate)
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if getattr(args, "verbose", False):
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    if args.command is None:
        parser.print_help()
        return 1
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
