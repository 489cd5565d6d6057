"""
CICD stack for the CICD CDK project.

This stack wires the deploy bucket, the Source/Build/Deploy pipeline and the
optional CloudFront distribution from one configuration record. Resources are
created in dependency order in a single pass; a failure aborts synthesis
before the remaining resources are registered.
"""

from __future__ import annotations
import logging
from typing import Optional
from aws_cdk import Stack
from constructs import Construct

from cicd_project.builders.buildspec_builder import resolve_buildspec
from cicd_project.builders.deploy_bucket_builder import DeployBucket
from cicd_project.builders.distribution_builder import SiteDistribution
from cicd_project.builders.pipeline_builder import CICDPipeline
from cicd_project.configs.cicd_cfg import CICDCfg
from cicd_project.configs.config_manager import ConfigManager

logger = logging.getLogger(__name__)


class CICDStack(Stack):
    """
    Stack delivering a GitHub repository into an S3 bucket.

    What this stack does:
      1) Creates the deploy bucket, optionally as a static website.
      2) Creates the pipeline that builds the repository and deploys the
         build output into the bucket.
      3) Fronts the bucket with CloudFront when use_cloudfront is set.
    """

    def __init__(self, scope: Construct, construct_id: str, *, cfg: CICDCfg, **kwargs) -> None:
        """
        Initialize the CICD stack.

        Args:
            scope: CDK construct scope
            construct_id: Construct ID
            cfg: Validated stack configuration
            **kwargs: Additional stack properties
        """
        super().__init__(scope, construct_id, **kwargs)
        self.cfg = cfg
        self.config_mgr = ConfigManager(self, cfg)

        # 1) Storage target
        self.deploy_bucket = DeployBucket(
            self, "DeployBucket",
            prefix=cfg.prefix,
            hosting=cfg.hosting,
        )
        self.bucket = self.deploy_bucket.bucket

        # 2) Pipeline
        self.buildspec = resolve_buildspec(self._buildspec_source())
        self.pipeline = CICDPipeline(
            self, "Pipeline",
            prefix=cfg.prefix,
            github=cfg.github,
            bucket=self.bucket,
            buildspec=self.buildspec,
            policy_file=cfg.codebuild_policy_file,
            config_mgr=self.config_mgr,
        )

        # 3) Optional distribution
        self.distribution: Optional[SiteDistribution] = None
        if cfg.hosting.use_cloudfront:
            self.distribution = SiteDistribution(
                self, "Distribution",
                prefix=cfg.prefix,
                bucket=self.bucket,
                hosting=cfg.hosting,
            )

        logger.info(
            "Assembled stack %s (s3 hosting: %s, cloudfront: %s)",
            construct_id, cfg.hosting.use_s3_hosting, cfg.hosting.use_cloudfront,
        )

    def _buildspec_source(self):
        # A buildspec file takes precedence over an inline buildspec
        if self.cfg.codebuild_buildspec_file:
            return self.config_mgr.load_config("buildspecs", self.cfg.codebuild_buildspec_file)
        return self.cfg.codebuild_buildspec
