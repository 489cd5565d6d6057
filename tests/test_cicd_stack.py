"""
Tests for the synthesized CICD stack.

These tests verify the resource graph: the deploy bucket, the three-stage
pipeline with its artifact chain, the build project and the optional
CloudFront distribution.
"""

import json
import logging

import aws_cdk as cdk
import pytest
from aws_cdk.assertions import Match, Template

from conftest import logical_id, only_resource
from cicd_project.stacks.cicd_stack import CICDStack

PASSTHROUGH_STRING = '{"version":"0.2","phases":{"build":{"commands":["env"]}},"artifacts":{"files":["**/*"]}}'


def deploy_bucket_props(stack, template) -> dict:
    resource = template.to_json()["Resources"][logical_id(stack, stack.bucket)]
    return resource.get("Properties", {})


def deploy_bucket_policies(stack, template) -> list:
    bucket_ref = {"Ref": logical_id(stack, stack.bucket)}
    return [
        policy for policy in template.find_resources("AWS::S3::BucketPolicy").values()
        if policy["Properties"]["Bucket"] == bucket_ref
    ]


def pipeline_stages(template) -> list:
    return only_resource(template, "AWS::CodePipeline::Pipeline")["Properties"]["Stages"]


class TestDeployBucket:
    """Storage target configuration."""

    def test_no_hosting_has_no_website_configuration(self, synth):
        stack, template = synth(use_s3_hosting=False, index_document="home.html")
        assert "WebsiteConfiguration" not in deploy_bucket_props(stack, template)

    def test_hosting_defaults_index_document(self, synth):
        stack, template = synth(use_s3_hosting=True)
        website = deploy_bucket_props(stack, template)["WebsiteConfiguration"]
        assert website == {"IndexDocument": "index.html"}

    def test_hosting_with_custom_documents(self, synth):
        stack, template = synth(use_s3_hosting=True, index_document="home.html", error_document="404.html")
        website = deploy_bucket_props(stack, template)["WebsiteConfiguration"]
        assert website == {"IndexDocument": "home.html", "ErrorDocument": "404.html"}

    def test_bucket_id_uses_prefix(self, synth):
        stack, _ = synth()
        assert stack.bucket.node.id == "mysite-cicd-deploy"

    def test_website_url_output_only_with_hosting(self, synth):
        _, template = synth(use_s3_hosting=False)
        assert not [k for k in template.to_json().get("Outputs", {}) if "WebsiteURL" in k]
        _, template = synth(use_s3_hosting=True)
        assert [k for k in template.to_json().get("Outputs", {}) if "WebsiteURL" in k]

    def test_hosting_grants_public_read(self, synth):
        stack, template = synth(use_s3_hosting=True, use_cloudfront=False)
        template.has_resource_properties("AWS::S3::BucketPolicy", {
            "Bucket": {"Ref": logical_id(stack, stack.bucket)},
            "PolicyDocument": {
                "Statement": Match.array_with([
                    Match.object_like({
                        "Effect": "Allow",
                        "Action": "s3:GetObject",
                        "Principal": {"AWS": "*"},
                    }),
                ]),
            },
        })
        block = deploy_bucket_props(stack, template)["PublicAccessBlockConfiguration"]
        assert block["BlockPublicPolicy"] is False
        assert block["RestrictPublicBuckets"] is False

    def test_no_hosting_keeps_bucket_private(self, synth):
        stack, template = synth(use_s3_hosting=False, use_cloudfront=False)
        assert deploy_bucket_policies(stack, template) == []
        block = deploy_bucket_props(stack, template).get("PublicAccessBlockConfiguration")
        assert block is None or all(block.values())


class TestDistribution:
    """Optional CloudFront distribution."""

    def test_no_distribution_without_flag(self, synth):
        stack, template = synth(use_cloudfront=False)
        template.resource_count_is("AWS::CloudFront::Distribution", 0)
        assert stack.distribution is None

    def test_one_distribution_with_single_default_behavior(self, synth):
        stack, template = synth(use_cloudfront=True)
        template.resource_count_is("AWS::CloudFront::Distribution", 1)

        config = only_resource(template, "AWS::CloudFront::Distribution")["Properties"]["DistributionConfig"]
        assert "CacheBehaviors" not in config
        assert len(config["Origins"]) == 1

        origin = config["Origins"][0]
        assert origin["DomainName"] == {
            "Fn::GetAtt": [logical_id(stack, stack.bucket), "RegionalDomainName"]
        }
        assert config["DefaultCacheBehavior"]["TargetOriginId"] == origin["Id"]

    def test_default_root_object_follows_hosting(self, synth):
        _, template = synth(use_cloudfront=True, use_s3_hosting=True)
        template.has_resource_properties("AWS::CloudFront::Distribution", {
            "DistributionConfig": Match.object_like({"DefaultRootObject": "index.html"}),
        })

        _, template = synth(use_cloudfront=True, use_s3_hosting=False)
        template.has_resource_properties("AWS::CloudFront::Distribution", {
            "DistributionConfig": Match.object_like({"DefaultRootObject": Match.absent()}),
        })


class TestPipeline:
    """Source/Build/Deploy wiring."""

    def test_three_stages_in_order(self, synth):
        stack, template = synth()
        assert [s["Name"] for s in pipeline_stages(template)] == ["Source", "Build", "Deploy"]
        assert stack.pipeline.stages == ["Source", "Build", "Deploy"]
        for stage in pipeline_stages(template):
            assert len(stage["Actions"]) == 1

    def test_artifacts_chain_between_stages(self, synth):
        _, template = synth()
        source, build, deploy = (s["Actions"][0] for s in pipeline_stages(template))

        assert len(source["OutputArtifacts"]) == 1
        assert build["InputArtifacts"] == source["OutputArtifacts"]
        assert build["OutputArtifacts"] == [{"Name": "build-output"}]
        assert deploy["InputArtifacts"] == build["OutputArtifacts"]

    def test_source_defaults_to_master(self, synth):
        _, template = synth()
        config = pipeline_stages(template)[0]["Actions"][0]["Configuration"]
        assert config["Owner"] == "octo-org"
        assert config["Repo"] == "octo-site"
        assert config["Branch"] == "master"

    def test_explicit_branch_wins(self, synth):
        _, template = synth(github_branch="develop")
        config = pipeline_stages(template)[0]["Actions"][0]["Configuration"]
        assert config["Branch"] == "develop"

    def test_webhook_trigger(self, synth):
        _, template = synth()
        template.resource_count_is("AWS::CodePipeline::Webhook", 1)
        config = pipeline_stages(template)[0]["Actions"][0]["Configuration"]
        assert config["PollForSourceChanges"] is False

    def test_token_resolved_from_secrets_manager(self, synth):
        _, template = synth()
        token = pipeline_stages(template)[0]["Actions"][0]["Configuration"]["OAuthToken"]
        assert token.startswith("{{resolve:secretsmanager:my-github-token")

    def test_token_resolved_from_ssm(self, synth):
        _, template = synth(github_token_source="ssm", github_token_secret_name="/ci/github-token")
        token = pipeline_stages(template)[0]["Actions"][0]["Configuration"]["OAuthToken"]
        assert token.startswith("{{resolve:ssm-secure:/ci/github-token")

    def test_deploy_targets_deploy_bucket(self, synth):
        stack, template = synth()
        config = pipeline_stages(template)[2]["Actions"][0]["Configuration"]
        assert config["BucketName"] == {"Ref": logical_id(stack, stack.bucket)}

    def test_single_pipeline_and_project(self, synth):
        _, template = synth(use_cloudfront=True)
        template.resource_count_is("AWS::CodePipeline::Pipeline", 1)
        template.resource_count_is("AWS::CodeBuild::Project", 1)


class TestBuildProject:
    """CodeBuild project environment and buildspec."""

    def test_privileged_small_linux_container(self, synth):
        _, template = synth()
        template.has_resource_properties("AWS::CodeBuild::Project", {
            "Environment": Match.object_like({
                "Type": "LINUX_CONTAINER",
                "ComputeType": "BUILD_GENERAL1_SMALL",
                "PrivilegedMode": True,
            }),
        })

    def test_default_buildspec_is_passthrough(self, synth):
        _, template = synth()
        source = only_resource(template, "AWS::CodeBuild::Project")["Properties"]["Source"]
        assert source["BuildSpec"] == PASSTHROUGH_STRING

    def test_structured_buildspec_is_serialized(self, synth):
        spec = {"version": "0.2", "phases": {"build": {"commands": ["make"]}}}
        _, template = synth(codebuild_buildspec=spec)
        source = only_resource(template, "AWS::CodeBuild::Project")["Properties"]["Source"]
        assert source["BuildSpec"] == json.dumps(spec, separators=(",", ":"))

    def test_literal_buildspec_is_verbatim(self, synth):
        literal = "version: 0.2\nphases:\n  build:\n    commands:\n      - make\n"
        _, template = synth(codebuild_buildspec=literal)
        source = only_resource(template, "AWS::CodeBuild::Project")["Properties"]["Source"]
        assert source["BuildSpec"] == literal

    def test_buildspec_file_wins_over_inline(self, synth):
        stack, template = synth(codebuild_buildspec_file="static_site.json", codebuild_buildspec="ignored")
        buildspec = json.loads(only_resource(template, "AWS::CodeBuild::Project")["Properties"]["Source"]["BuildSpec"])
        assert buildspec["env"]["variables"] == {"SITE_PREFIX": "mysite", "SOURCE_BRANCH": "master"}
        assert buildspec["phases"]["build"]["commands"] == ["npm run build"]
        assert stack.buildspec != "ignored"

    def test_missing_buildspec_file_fails_synth(self, synth):
        with pytest.raises(FileNotFoundError):
            synth(codebuild_buildspec_file="nope.json")

    def test_policy_file_attaches_inline_policy(self, synth):
        _, template = synth(codebuild_policy_file="codebuild.json")
        template.has_resource_properties("AWS::IAM::Policy", {
            "PolicyDocument": {
                "Statement": Match.array_with([
                    Match.object_like({
                        "Effect": "Allow",
                        "Action": ["ssm:GetParameter", "ssm:GetParameters"],
                    }),
                ]),
            },
        })


class TestStackAssembly:
    """Single-pass assembly and failure behaviour."""

    def test_failure_stops_before_pipeline_is_registered(self, make_cfg):
        app = cdk.App()
        with pytest.raises(FileNotFoundError):
            CICDStack(app, "Broken", cfg=make_cfg(codebuild_policy_file="missing.json", use_cloudfront=True))

        broken = app.node.try_find_child("Broken")
        registered = {c.node.id for c in broken.node.find_all()}
        assert "mysite-cicd-deploy" in registered
        assert "mysite-cicd-pipeline" not in registered
        assert "mysite-cf-distribution" not in registered

    def test_assembly_is_logged_without_secret(self, synth, caplog):
        with caplog.at_level(logging.INFO, logger="cicd_project"):
            synth(use_cloudfront=True)
        assert "Assembled stack TestCICDStack" in caplog.text
        assert "my-github-token" not in caplog.text

    def test_full_template_synthesizes(self, make_cfg):
        app = cdk.App()
        stack = CICDStack(app, "Full", cfg=make_cfg(use_cloudfront=True, use_s3_hosting=True))
        template = Template.from_stack(stack)
        template.resource_count_is("AWS::CloudFront::Distribution", 1)
        assert app.synth().get_stack_by_name("Full").template["Resources"]
