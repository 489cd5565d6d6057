#!/usr/bin/env python3
"""
JSON schema validation for the CICD project configuration files.

Validates the "cicd" context block of cdk.json, every buildspec file and
every IAM policy file against the schemas under schema/. Designed to run as
a pre-commit hook or a CI step before `cdk synth`.
"""

import json
import sys
from pathlib import Path

from jsonschema import Draft202012Validator

PROJECT_ROOT = Path(__file__).resolve().parent.parent
CONFIG_ROOT = PROJECT_ROOT / "cicd_project" / "configs"

# Schema to config file glob mappings
SCHEMA_MAPPINGS = {
    "schema/buildspec.schema.json": CONFIG_ROOT / "buildspecs",
    "schema/policy.schema.json": CONFIG_ROOT / "iam" / "policies",
}


def load_json(path: Path) -> dict:
    """Load and parse a JSON file."""
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def schema_errors(schema_path: Path, data) -> list[str]:
    """Return the validation errors of data against a schema, formatted."""
    validator = Draft202012Validator(load_json(schema_path))
    errors = sorted(validator.iter_errors(data), key=lambda e: list(e.path))
    return [f"{'/'.join(map(str, e.path)) or '(root)'}: {e.message}" for e in errors]


def validate_cdk_context(project_root: Path = PROJECT_ROOT) -> bool:
    """Validate the cicd block of cdk.json."""
    cdk_json = project_root / "cdk.json"
    try:
        ctx = load_json(cdk_json).get("context", {}).get("cicd")
    except (OSError, ValueError) as e:
        print(f"[X] {cdk_json}: {e}")
        return False

    if ctx is None:
        print(f"[X] {cdk_json}: missing context.cicd")
        return False

    errors = schema_errors(project_root / "schema/cicd.schema.json", ctx)
    if errors:
        print(f"[X] {cdk_json}: {len(errors)} error(s)")
        for error in errors:
            print(f"  - {error}")
        return False
    print(f"[OK] {cdk_json}: OK")
    return True


def validate_files_against_schema(schema_path: Path, config_files: list[Path]) -> bool:
    """Validate a list of config files against a schema."""
    all_valid = True
    for config_file in config_files:
        try:
            data = load_json(config_file)
        except (OSError, ValueError) as e:
            print(f"[X] {config_file}: {e}")
            all_valid = False
            continue

        errors = schema_errors(schema_path, data)
        if errors:
            all_valid = False
            print(f"[X] {config_file}: {len(errors)} error(s)")
            for error in errors:
                print(f"  - {error}")
        else:
            print(f"[OK] {config_file}: OK")

    return all_valid


def main() -> int:
    """Main validation function."""
    print("Validating JSON configuration files against schemas...")
    print()

    all_valid = validate_cdk_context()
    print()

    for schema_file, config_dir in SCHEMA_MAPPINGS.items():
        print(f"Validating against {schema_file}:")
        config_files = sorted(config_dir.glob("*.json"))
        if not validate_files_against_schema(PROJECT_ROOT / schema_file, config_files):
            all_valid = False
        print()

    if all_valid:
        print("All configuration files are valid! [OK]")
        return 0
    print("Some configuration files have validation errors! [X]")
    return 1


if __name__ == "__main__":
    sys.exit(main())
