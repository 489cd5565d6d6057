"""
Deploy bucket builder for the CICD CDK project.

This module provides the storage target of the pipeline: one S3 bucket that
receives the build output. When S3 hosting is enabled the bucket is also
configured as a static website with the index and error documents, readable
by anyone so the website endpoint can serve it.
"""

from __future__ import annotations
from aws_cdk import (
    aws_s3 as s3,
    CfnOutput,
)
from constructs import Construct
from cicd_project.configs.cicd_cfg import HostingCfg

class DeployBucket(Construct):
    """
    Storage target for the pipeline deploy stage.

    Creates an S3 bucket, optionally configured for static website
    hosting, usable both as deploy target and as a CloudFront origin.
    """
    def __init__(
            self,
            scope: Construct,
            construct_id: str,
            *,
            prefix: str,
            hosting: HostingCfg
        ) -> None:
        """
        Initialize the deploy bucket builder.

        Args:
            scope: CDK construct scope
            construct_id: Construct ID
            prefix: Naming namespace for the bucket
            hosting: Hosting settings
        """
        super().__init__(scope, construct_id)

        self.index_document = hosting.resolved_index_document
        self.error_document = hosting.resolved_error_document

        # Website settings and public read stay off unless hosting is enabled
        website_kwargs = {}
        if hosting.use_s3_hosting:
            website_kwargs = dict(
                public_read_access=True,
                block_public_access=s3.BlockPublicAccess(
                    block_public_policy=False,
                    block_public_acls=False,
                    ignore_public_acls=False,
                    restrict_public_buckets=False
                ),
            )

        self.bucket = s3.Bucket(
            self,
            f"{prefix}-cicd-deploy",
            website_index_document=self.index_document,
            website_error_document=self.error_document,
            **website_kwargs,
        )

        CfnOutput(
            self,
            "BucketName",
            value=self.bucket.bucket_name,
        )

        if hosting.use_s3_hosting:
            CfnOutput(
                self,
                "WebsiteURL",
                value=self.bucket.bucket_website_url,
                description=f"Website URL of the {prefix} deploy bucket",
            )
