"""ECR repository and lifecycle policy."""

import json

import pulumi
import pulumi_aws

MAX_IMAGE_COUNT = 10


def repository_name(app_name: str, env: str | None = None) -> str:
    """Repository name: ``{env}/{app_name}`` when env is given, else ``app_name``."""
    if env:
        return f"{env}/{app_name}"
    return app_name


def resource_prefix(app_name: str, env: str | None = None) -> str:
    """Prefix for Pulumi logical names of the repository and its children."""
    if env:
        return f"{env}-{app_name}"
    return app_name


def lifecycle_policy_document() -> str:
    """Lifecycle policy JSON expiring everything but the last 10 images."""
    return json.dumps(
        {
            "rules": [
                {
                    "rulePriority": 1,
                    "description": f"Keep only the last {MAX_IMAGE_COUNT} images",
                    "selection": {
                        "tagStatus": "any",
                        "countType": "imageCountMoreThan",
                        "countNumber": MAX_IMAGE_COUNT,
                    },
                    "action": {"type": "expire"},
                }
            ],
        }
    )


def create_ecr_repository(
    app_name: str,
    env: str | None,
    mutable_tags: list[str] | None = None,
    opts: pulumi.ResourceOptions | None = None,
) -> pulumi_aws.ecr.Repository:
    """Create an ECR repository with immutable tags and scan-on-push disabled.

    ``mutable_tags`` lists tags exempt from immutability (e.g. the build cache
    tag, which is overwritten on every run).
    """
    mutability_args: dict = {"image_tag_mutability": "IMMUTABLE"}
    if mutable_tags:
        mutability_args = {
            "image_tag_mutability": "IMMUTABLE_WITH_EXCLUSION",
            "image_tag_mutability_exclusion_filters": [
                pulumi_aws.ecr.RepositoryImageTagMutabilityExclusionFilterArgs(
                    filter=tag,
                    filter_type="WILDCARD",
                )
                for tag in mutable_tags
            ],
        }
    return pulumi_aws.ecr.Repository(
        f"{resource_prefix(app_name, env)}-repo",
        name=repository_name(app_name, env),
        image_scanning_configuration=pulumi_aws.ecr.RepositoryImageScanningConfigurationArgs(
            scan_on_push=False,
        ),
        opts=opts,
        **mutability_args,
    )


def create_lifecycle_policy(
    repo: pulumi_aws.ecr.Repository,
    app_name: str,
    env: str | None,
    opts: pulumi.ResourceOptions | None = None,
) -> pulumi_aws.ecr.LifecyclePolicy:
    """Attach the retention policy to ``repo``."""
    return pulumi_aws.ecr.LifecyclePolicy(
        f"{resource_prefix(app_name, env)}-lifecycle",
        repository=repo.name,
        policy=lifecycle_policy_document(),
        opts=opts,
    )
