"""
CodePipeline builder for the CICD CDK project.

This module assembles the three-stage delivery pipeline:

  Source  - pulls a GitHub branch on webhook trigger
  Build   - runs the buildspec in a privileged CodeBuild container
  Deploy  - copies the build output into the deploy bucket

Exactly one artifact flows Source -> Build and one flows Build -> Deploy.
"""

from __future__ import annotations
import logging
from typing import List, Optional, cast
from aws_cdk import (
    SecretValue,
    aws_codebuild as codebuild,
    aws_codepipeline as codepipeline,
    aws_codepipeline_actions as actions,
    aws_s3 as s3,
)
from constructs import Construct
from cicd_project.builders.policy_builder import apply_policies_to_role
from cicd_project.configs.cicd_cfg import GithubCfg
from cicd_project.configs.config_manager import ConfigManager

logger = logging.getLogger(__name__)

BUILD_OUTPUT_ARTIFACT = "build-output"

def github_token(github: GithubCfg) -> SecretValue:
    """
    Build the reference to the GitHub token.

    The token is resolved by CloudFormation at deploy time and never read
    here.

    Args:
        github: GitHub settings naming the secret and its backend

    Returns:
        Secret value reference
    """
    if github.token_source == "ssm":
        return SecretValue.ssm_secure(github.token_secret_name)
    return SecretValue.secrets_manager(github.token_secret_name)

class CICDPipeline(Construct):
    """
    Source/Build/Deploy pipeline delivering a GitHub branch into a bucket.
    """
    def __init__(
            self,
            scope: Construct,
            construct_id: str,
            *,
            prefix: str,
            github: GithubCfg,
            bucket: s3.IBucket,
            buildspec: str,
            policy_file: Optional[str] = None,
            config_mgr: Optional[ConfigManager] = None
        ) -> None:
        """
        Initialize the pipeline builder.

        Args:
            scope: CDK construct scope
            construct_id: Construct ID
            prefix: Naming namespace for the pipeline resources
            github: GitHub source settings
            bucket: Deploy target
            buildspec: Resolved buildspec string
            policy_file: Optional extra IAM policy file for the build project
            config_mgr: Config manager used to load the policy file

        Raises:
            ValueError: If a policy file is given without a config manager
        """
        super().__init__(scope, construct_id)

        # ---- Source ----
        self.source_output = codepipeline.Artifact()
        self.source_action = actions.GitHubSourceAction(
            action_name="GitHub_Source",
            owner=github.owner,
            repo=github.repo,
            branch=github.branch,
            oauth_token=github_token(github),
            output=self.source_output,
            trigger=actions.GitHubTrigger.WEBHOOK,
        )

        # ---- Build ----
        self.project = codebuild.PipelineProject(
            self,
            f"{prefix}-cicd-codebuild",
            environment=codebuild.BuildEnvironment(
                build_image=codebuild.LinuxBuildImage.STANDARD_7_0,
                compute_type=codebuild.ComputeType.SMALL,
                # nested docker builds
                privileged=True,
            ),
        )
        # BuildSpec has no constructor for a literal string, so the resolved
        # spec is written to the CloudFormation property as is.
        cfn_project = cast(codebuild.CfnProject, self.project.node.default_child)
        cfn_project.add_property_override("Source.BuildSpec", buildspec)

        if policy_file:
            if config_mgr is None:
                raise ValueError(f"Policy file '{policy_file}' given without a config manager")
            apply_policies_to_role(self.project.role, policy_file, config_mgr)

        self.build_output = codepipeline.Artifact(BUILD_OUTPUT_ARTIFACT)
        self.build_action = actions.CodeBuildAction(
            action_name="CodeBuild",
            project=self.project,
            input=self.source_output,
            outputs=[self.build_output],
        )

        # ---- Deploy ----
        self.deploy_action = actions.S3DeployAction(
            action_name="S3Deploy",
            input=self.build_output,
            bucket=bucket,
        )

        self.stages: List[str] = ["Source", "Build", "Deploy"]
        self.pipeline = codepipeline.Pipeline(
            self,
            f"{prefix}-cicd-pipeline",
            stages=[
                codepipeline.StageProps(stage_name="Source", actions=[self.source_action]),
                codepipeline.StageProps(stage_name="Build", actions=[self.build_action]),
                codepipeline.StageProps(stage_name="Deploy", actions=[self.deploy_action]),
            ],
        )
        logger.info(
            "Pipeline %s-cicd-pipeline tracks %s/%s@%s",
            prefix, github.owner, github.repo, github.branch,
        )
