"""
Project configuration for the CICD CDK project.

This module provides the typed configuration records consumed by the stack,
the defaults merge used for the GitHub source coordinates, and the loader
that reads the ``cicd`` block from cdk.json context. All records are frozen:
they are built once, validated, and never modified afterwards.
"""

from __future__ import annotations
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Dict, Optional, Union
from aws_cdk import App, Stack
from cicd_project.configs.error_handler import ErrorHandler

logger = logging.getLogger(__name__)

DEFAULT_INDEX_DOCUMENT = "index.html"

TOKEN_SOURCES = ("secretsmanager", "ssm")

GITHUB_DEFAULTS: Dict[str, Any] = {
    "branch": "master",
    "token_secret_name": "my-github-token",
    "token_source": "secretsmanager",
}

BuildspecValue = Union[Mapping[str, Any], str, None]

def merge_defaults(
        defaults: Mapping[str, Any],
        overrides: Optional[Mapping[str, Any]]
    ) -> Dict[str, Any]:
    """
    Shallow-merge overrides on top of defaults.

    Keys present in overrides win. A key whose value is None counts as
    absent, so the default for that key survives.

    Args:
        defaults: Built-in default values
        overrides: Caller-supplied values

    Returns:
        New merged dictionary
    """
    merged = dict(defaults)
    for key, value in (overrides or {}).items():
        if value is not None:
            merged[key] = value
    return merged

@dataclass(frozen=True)
class GithubCfg:
    """
    GitHub source settings.

    Attributes:
        owner: GitHub repository owner
        repo: GitHub repository name
        branch: Branch that triggers the pipeline
        token_secret_name: Name of the secret holding the GitHub token
        token_source: Secret backend, "secretsmanager" or "ssm"
    """
    owner: str
    repo: str
    branch: str = GITHUB_DEFAULTS["branch"]
    token_secret_name: str = GITHUB_DEFAULTS["token_secret_name"]
    token_source: str = GITHUB_DEFAULTS["token_source"]

@dataclass(frozen=True)
class HostingCfg:
    """
    Bucket hosting and CDN settings.

    Attributes:
        use_cloudfront: Front the bucket with a CloudFront distribution
        use_s3_hosting: Enable S3 static website hosting on the bucket
        index_document: Website index document
        error_document: Website error document
    """
    use_cloudfront: bool = False
    use_s3_hosting: bool = False
    index_document: Optional[str] = None
    error_document: Optional[str] = None

    @property
    def resolved_index_document(self) -> Optional[str]:
        """
        Get the index document the bucket is configured with.

        Returns:
            None when hosting is disabled, the index document otherwise
        """
        if not self.use_s3_hosting:
            return None
        return self.index_document or DEFAULT_INDEX_DOCUMENT

    @property
    def resolved_error_document(self) -> Optional[str]:
        if not self.use_s3_hosting:
            return None
        return self.error_document or None

@dataclass(frozen=True)
class CICDCfg:
    """
    Main stack configuration container.

    Attributes:
        prefix: Naming namespace for every resource in the stack
        github: GitHub source settings
        hosting: Bucket hosting and CDN settings
        codebuild_buildspec: Structured buildspec, literal buildspec string or None
        codebuild_buildspec_file: Buildspec JSON file under configs/buildspecs
        codebuild_policy_file: Extra IAM policy file for the build project
        account_id: AWS account ID
        region: AWS region
    """
    prefix: str
    github: GithubCfg
    hosting: HostingCfg = field(default_factory=HostingCfg)
    codebuild_buildspec: BuildspecValue = None
    codebuild_buildspec_file: Optional[str] = None
    codebuild_policy_file: Optional[str] = None
    account_id: Optional[str] = None
    region: Optional[str] = None

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "CICDCfg":
        """
        Build and validate the configuration from a plain mapping.

        GitHub coordinates may be given flat (github_owner, github_repo,
        github_branch, ...) or as a nested "github" block; flat keys win.

        Args:
            raw: Configuration mapping (usually the cdk.json "cicd" block)

        Returns:
            Validated stack configuration

        Raises:
            ValueError: If required keys are missing or values are invalid
            TypeError: If a value has the wrong type
        """
        ErrorHandler.validate_type(raw, Mapping, "cicd", "Context")

        gh_block = raw.get("github") or {}
        ErrorHandler.validate_type(gh_block, Mapping, "github", "Context")
        gh_overrides = dict(gh_block)
        for key in ("owner", "repo", "branch", "token_secret_name", "token_source"):
            flat = raw.get(f"github_{key}")
            if flat is not None:
                gh_overrides[key] = flat
        gh = merge_defaults(GITHUB_DEFAULTS, gh_overrides)

        prefix = raw.get("prefix")

        missing = []
        if not prefix:
            missing.append("prefix")
        if not gh.get("owner"):
            missing.append("github.owner")
        if not gh.get("repo"):
            missing.append("github.repo")
        ErrorHandler.validate_context_keys(missing, "cicd configuration")

        ErrorHandler.validate_string_not_empty(prefix, "prefix", "CICD")
        for key in ("owner", "repo", "branch", "token_secret_name"):
            ErrorHandler.validate_string_not_empty(gh[key], f"github.{key}", "CICD")
        ErrorHandler.validate_enum_value(gh["token_source"], TOKEN_SOURCES, "github.token_source", "CICD")

        use_cloudfront = raw.get("use_cloudfront", False)
        use_s3_hosting = raw.get("use_s3_hosting", False)
        ErrorHandler.validate_boolean(use_cloudfront, "use_cloudfront", "CICD")
        ErrorHandler.validate_boolean(use_s3_hosting, "use_s3_hosting", "CICD")

        for key in ("index_document", "error_document", "codebuild_buildspec_file", "codebuild_policy_file"):
            if raw.get(key) is not None:
                ErrorHandler.validate_type(raw[key], str, key, "CICD")

        buildspec = raw.get("codebuild_buildspec")
        if buildspec is not None:
            ErrorHandler.validate_type(buildspec, (Mapping, str), "codebuild_buildspec", "CICD")
            if isinstance(buildspec, Mapping):
                buildspec = dict(buildspec)

        cfg = cls(
            prefix=prefix,
            github=GithubCfg(
                owner=gh["owner"],
                repo=gh["repo"],
                branch=gh["branch"],
                token_secret_name=gh["token_secret_name"],
                token_source=gh["token_source"],
            ),
            hosting=HostingCfg(
                use_cloudfront=use_cloudfront,
                use_s3_hosting=use_s3_hosting,
                index_document=raw.get("index_document"),
                error_document=raw.get("error_document"),
            ),
            codebuild_buildspec=buildspec,
            codebuild_buildspec_file=raw.get("codebuild_buildspec_file"),
            codebuild_policy_file=raw.get("codebuild_policy_file"),
            account_id=raw.get("account_id") or os.environ.get("CDK_DEFAULT_ACCOUNT"),
            region=raw.get("region") or os.environ.get("CDK_DEFAULT_REGION"),
        )
        logger.debug("Loaded cicd configuration for prefix %s", cfg.prefix)
        return cfg

    def vars(
            self,
            stack: Stack,
            extra: dict[str, str] | None = None
        ) -> dict[str, str]:
        """
        Generate placeholder variables for JSON configuration expansion.

        Args:
            stack: CDK stack instance
            extra: Additional variables to include

        Returns:
            Dictionary of variable name to value mappings
        """
        base = {
            "Prefix": self.prefix,
            "AccountId": stack.account or self.account_id,
            "Region": stack.region or self.region,
            "Partition": stack.partition,
            "GithubOwner": self.github.owner,
            "GithubRepo": self.github.repo,
            "Branch": self.github.branch,
        }
        if extra:
            base.update({k: str(v) for k, v in extra.items()})

        return base

def _node(obj: Union[App, Stack]):
    """
    Get the CDK node from an App or Stack.

    Args:
        obj: CDK App or Stack instance

    Returns:
        CDK node instance
    """
    return (obj if isinstance(obj, App) else Stack.of(obj)).node

@lru_cache(maxsize=1)
def get_cfg(obj: Union[App, Stack]) -> CICDCfg:
    """
    Load the stack configuration from cdk.json context.

    Reads the "cicd" block once and applies the command line overrides
    -c cicd.prefix=... and -c cicd.branch=...

    Args:
        obj: CDK App or Stack instance

    Returns:
        Validated stack configuration

    Raises:
        ValueError: If required context keys are missing
    """
    node = _node(obj)
    ctx = dict(node.try_get_context("cicd") or {})

    prefix_override = node.try_get_context("cicd.prefix")
    if prefix_override:
        ctx["prefix"] = prefix_override
    branch_override = node.try_get_context("cicd.branch")
    if branch_override:
        ctx["github_branch"] = branch_override

    return CICDCfg.from_dict(ctx)
