"""
Tests for build specification resolution.
"""

import json
from types import MappingProxyType

from cicd_project.builders.buildspec_builder import (
    PASSTHROUGH_BUILDSPEC,
    resolve_buildspec,
    serialize_buildspec,
)

PASSTHROUGH_STRING = '{"version":"0.2","phases":{"build":{"commands":["env"]}},"artifacts":{"files":["**/*"]}}'


def test_passthrough_shape():
    assert PASSTHROUGH_BUILDSPEC == {
        "version": "0.2",
        "phases": {"build": {"commands": ["env"]}},
        "artifacts": {"files": ["**/*"]},
    }


def test_absent_falls_back_to_passthrough():
    assert resolve_buildspec(None) == PASSTHROUGH_STRING
    assert resolve_buildspec() == PASSTHROUGH_STRING


def test_empty_string_falls_back_to_passthrough():
    assert resolve_buildspec("") == PASSTHROUGH_STRING


def test_structured_object_is_serialized():
    spec = {"version": "0.2", "phases": {"build": {"commands": ["npm run build"]}}}
    resolved = resolve_buildspec(spec)
    assert resolved == '{"version":"0.2","phases":{"build":{"commands":["npm run build"]}}}'
    assert json.loads(resolved) == spec


def test_literal_string_is_kept_verbatim():
    literal = "version: 0.2\nphases:\n  build:\n    commands:\n      - make\n"
    assert resolve_buildspec(literal) is literal


def test_serialize_keeps_key_order():
    assert serialize_buildspec({"b": 1, "a": 2}) == '{"b":1,"a":2}'


def test_read_only_mapping_is_serialized():
    spec = MappingProxyType({"version": "0.2", "phases": {"build": {"commands": ["make"]}}})
    assert resolve_buildspec(spec) == '{"version":"0.2","phases":{"build":{"commands":["make"]}}}'
