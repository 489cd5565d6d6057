"""
IAM policy builders for the CICD CDK project.

This module attaches extra IAM policies, read from a JSON policy file, to the
build project role. It is used when the build needs permissions beyond what
CodePipeline grants by default (cache invalidation, parameter lookups).

Policy file layout:
{
  "managed": ["AmazonS3ReadOnlyAccess", "arn:aws:iam::123456789012:policy/BuildExtras"],
  "inline": {
    "ReadBuildParameters": [
      {"Effect": "Allow", "Action": ["ssm:GetParameter"], "Resource": ["*"]}
    ]
  }
}
"""

from __future__ import annotations
import logging
from typing import Any, List
from aws_cdk import aws_iam as iam
from cicd_project.configs.config_manager import ConfigManager
from cicd_project.configs.error_handler import ErrorHandler

logger = logging.getLogger(__name__)

POLICY_SECTIONS = ("managed", "inline")

def _as_statements(value: Any) -> List[Any]:
    return value if isinstance(value, list) else [value]

def managed_policy(role: iam.IRole, ref: str) -> iam.IManagedPolicy:
    """
    Resolve a managed policy reference.

    Args:
        role: Role the policy is attached to, used as scope for imported ARNs
        ref: Customer managed policy ARN or AWS managed policy name

    Returns:
        Managed policy
    """
    if ref.startswith("arn:"):
        name = ref.rsplit("/", 1)[-1]
        return iam.ManagedPolicy.from_managed_policy_arn(role, f"Managed-{name}", ref)
    return iam.ManagedPolicy.from_aws_managed_policy_name(ref)

def _check_statement(statement: Any, where: str) -> None:
    ErrorHandler.validate_type(statement, dict, where, "Policy")
    ErrorHandler.validate_required_fields(statement, ["Effect", "Action"], where.capitalize())
    if "Resource" not in statement and "NotResource" not in statement:
        raise ValueError(f"{where.capitalize()} must include Resource or NotResource")

def validate_policy_config(raw: dict) -> None:
    """
    Validate the structure of a policy file.

    Raises:
        ValueError: On unknown sections, empty or incomplete statements
        TypeError: If a section has the wrong type
    """
    ErrorHandler.validate_type(raw, dict, "policy config", "Policy")

    unknown = sorted(set(raw) - set(POLICY_SECTIONS))
    if unknown:
        raise ValueError(f"Unknown keys in policy config: {', '.join(unknown)}")

    ErrorHandler.validate_type(raw.get("managed", []), (list, tuple), "managed", "Policy")
    inline = raw.get("inline", {})
    ErrorHandler.validate_type(inline, dict, "inline", "Policy")

    for policy_name, statements in inline.items():
        ErrorHandler.validate_string_not_empty(policy_name, "inline policy name", "Policy")
        statements = _as_statements(statements)
        ErrorHandler.validate_list_not_empty(statements, f"inline policy '{policy_name}'", "Policy")
        for idx, statement in enumerate(statements):
            _check_statement(statement, f"statement #{idx} in '{policy_name}'")

def attach_policies(role: iam.IRole, raw: dict) -> None:
    """
    Validate a policy config and attach its policies to a role.

    Args:
        role: IAM role receiving the policies
        raw: Parsed policy config
    """
    validate_policy_config(raw)

    for ref in raw.get("managed", []):
        role.add_managed_policy(managed_policy(role, ref))

    for policy_name, statements in raw.get("inline", {}).items():
        iam.Policy(
            role,
            f"Inline-{policy_name}",
            document=iam.PolicyDocument(
                statements=[iam.PolicyStatement.from_json(s) for s in _as_statements(statements)]
            ),
            roles=[role],
        )

def apply_policies_to_role(
        role: iam.IRole,
        filename: str,
        config_mgr: ConfigManager
    ) -> None:
    """
    Apply policies from a JSON file under configs/iam/policies to a role.

    Args:
        role: IAM role to apply policies to
        filename: Policy filename
        config_mgr: Config manager used to load and expand the file

    Raises:
        ValueError: If policy configuration is invalid
        FileNotFoundError: If policy file is not found
    """
    attach_policies(role, config_mgr.load_config("policies", filename))
    logger.info("Applied policy file %s", filename)
