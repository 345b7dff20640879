"""Stack configuration loading and the tagged AWS provider."""

from dataclasses import dataclass

import pulumi
import pulumi_aws

RESOURCE_NAME = "dmnd-client-image"
APP_NAME = "client"
DOCKER_CONTEXT = "../../"
DOCKERFILE = "../../Dockerfile"
DEFAULT_IMAGE_TAG = "latest"


@dataclass
class StackConfig:
    """Parsed Pulumi stack configuration for the image stack."""

    version: str
    region: str
    env: str | None = None
    build_cache: bool = False


def load_stack_config() -> StackConfig:
    """Read version, env and buildCache from the project config namespace.

    Raises:
        pulumi.ConfigMissingError: If ``version`` or ``aws:region`` is not set.
        SystemExit: If ``version`` or ``env`` is set to a blank string.
    """
    config = pulumi.Config()
    aws_config = pulumi.Config("aws")

    version = config.require("version").strip()
    if not version:
        raise SystemExit("config 'version' must not be empty")

    env = config.get("env")
    if env is not None:
        env = env.strip()
        if not env:
            raise SystemExit("config 'env' must not be empty when set")

    return StackConfig(
        version=version,
        region=aws_config.require("region"),
        env=env,
        build_cache=bool(config.get_bool("buildCache")),
    )


def create_aws_provider(app_name: str, region: str) -> pulumi_aws.Provider:
    """Create AWS provider with default resource tags."""
    return pulumi_aws.Provider(
        "aws-tagged",
        region=region,
        default_tags=pulumi_aws.ProviderDefaultTagsArgs(
            tags={
                "app": app_name,
                "managed-by": "ecr-image",
            }
        ),
    )
