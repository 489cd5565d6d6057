"""
CloudFront distribution builder for the CICD CDK project.

Fronts the deploy bucket with a single-origin distribution. The topology is
fixed: one S3 origin behind the default behavior and no other behaviors.
"""

from __future__ import annotations
from aws_cdk import (
    aws_cloudfront as cloudfront,
    aws_cloudfront_origins as origins,
    aws_s3 as s3,
    CfnOutput,
)
from constructs import Construct
from cicd_project.configs.cicd_cfg import HostingCfg

class SiteDistribution(Construct):
    """
    CloudFront distribution in front of the deploy bucket.
    """
    def __init__(
            self,
            scope: Construct,
            construct_id: str,
            *,
            prefix: str,
            bucket: s3.IBucket,
            hosting: HostingCfg
        ) -> None:
        """
        Initialize the distribution builder.

        Args:
            scope: CDK construct scope
            construct_id: Construct ID
            prefix: Naming namespace for the distribution
            bucket: Origin bucket
            hosting: Hosting settings, used for the default root object
        """
        super().__init__(scope, construct_id)

        self.distribution = cloudfront.Distribution(
            self,
            f"{prefix}-cf-distribution",
            default_behavior=cloudfront.BehaviorOptions(
                origin=origins.S3BucketOrigin.with_origin_access_control(bucket),
            ),
            default_root_object=hosting.resolved_index_document,
        )

        CfnOutput(
            self,
            "DistributionDomainName",
            value=self.distribution.distribution_domain_name,
        )
