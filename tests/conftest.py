"""
Shared fixtures for the CICD stack tests.

Stacks are synthesized in memory with aws_cdk.assertions; nothing is
deployed and no AWS credentials are needed.
"""

import aws_cdk as cdk
import pytest
from aws_cdk.assertions import Template

from cicd_project.configs.cicd_cfg import CICDCfg
from cicd_project.stacks.cicd_stack import CICDStack

BASE_CONFIG = {
    "prefix": "mysite",
    "github_owner": "octo-org",
    "github_repo": "octo-site",
}


def logical_id(stack, construct) -> str:
    """Resolve the CloudFormation logical ID of an L2 construct."""
    return stack.resolve(stack.get_logical_id(construct.node.default_child))


def only_resource(template: Template, resource_type: str) -> dict:
    found = template.find_resources(resource_type)
    assert len(found) == 1, f"expected one {resource_type}, got {len(found)}"
    return next(iter(found.values()))


@pytest.fixture
def make_cfg():
    """Build a validated configuration from BASE_CONFIG plus overrides."""
    def _make(**overrides) -> CICDCfg:
        return CICDCfg.from_dict({**BASE_CONFIG, **overrides})
    return _make


@pytest.fixture
def synth(make_cfg):
    """Synthesize a CICDStack and return (stack, template)."""
    def _synth(**overrides):
        app = cdk.App()
        stack = CICDStack(app, "TestCICDStack", cfg=make_cfg(**overrides))
        return stack, Template.from_stack(stack)
    return _synth
