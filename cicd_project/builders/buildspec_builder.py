"""
Build specification resolution for the CICD CDK project.

The build project accepts a buildspec in one of three forms: a structured
object, a literal buildspec string, or nothing at all. This module turns any
of them into the string handed to CodeBuild. The content is not validated
here; a malformed buildspec fails when CodeBuild runs it.
"""

from __future__ import annotations
import json
import logging
from collections.abc import Mapping
from typing import Any, Dict

logger = logging.getLogger(__name__)

# Emits the build environment and archives every file as the build output.
PASSTHROUGH_BUILDSPEC: Dict[str, Any] = {
    "version": "0.2",
    "phases": {
        "build": {
            "commands": [
                "env",
            ],
        },
    },
    "artifacts": {
        "files": [
            "**/*",
        ],
    },
}

def serialize_buildspec(buildspec: Mapping[str, Any]) -> str:
    """
    Serialize a structured buildspec to its compact JSON string form.

    Args:
        buildspec: Structured buildspec

    Returns:
        JSON string with no insignificant whitespace, key order preserved
    """
    return json.dumps(dict(buildspec), separators=(",", ":"))

def resolve_buildspec(buildspec: Any = None) -> str:
    """
    Resolve the buildspec string used by the build project.

    Resolution order:
      1) A structured object is serialized.
      2) A non-empty string is used verbatim.
      3) Anything else falls back to the serialized pass-through buildspec.

    Args:
        buildspec: Structured buildspec, literal buildspec string or None

    Returns:
        Buildspec string
    """
    if isinstance(buildspec, Mapping):
        logger.debug("Using structured buildspec")
        return serialize_buildspec(buildspec)
    if isinstance(buildspec, str) and buildspec:
        logger.debug("Using literal buildspec")
        return buildspec
    logger.debug("Using pass-through buildspec")
    return serialize_buildspec(PASSTHROUGH_BUILDSPEC)
