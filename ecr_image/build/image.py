"""Docker image build and push into the ECR repository."""

from datetime import datetime, timezone

import pulumi
import pulumi_docker

from ecr_image.registry.credentials import RegistryCredentials

PLATFORM = "linux/amd64"
CACHE_TAG = "cache"


def image_name(repository_url: pulumi.Input[str], tag: str) -> pulumi.Output[str]:
    """Registry-qualified image name ``{repository_url}:{tag}``."""
    return pulumi.Output.concat(repository_url, ":", tag)


def cache_ref(repository_url: pulumi.Input[str]) -> pulumi.Output[str]:
    """Build cache reference on the same repository."""
    return pulumi.Output.concat(repository_url, ":", CACHE_TAG)


def build_timestamp(now: datetime | None = None) -> str:
    """UTC timestamp with millisecond precision, e.g. 2024-05-01T12:00:00.000Z.

    Raises:
        ValueError: If ``now`` is naive; it would otherwise be read as local time.
    """
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None or now.utcoffset() is None:
        raise ValueError("build timestamp requires a timezone-aware datetime")
    return now.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def build_args(build_date: str, build_cache: bool = False) -> dict[str, str]:
    """Build-time arguments passed to the Dockerfile."""
    args = {"BUILD_DATE": build_date}
    if build_cache:
        # Embed cache metadata so the :cache tag can seed later builds.
        args["BUILDKIT_INLINE_CACHE"] = "1"
    return args


def create_image(
    resource_name: str,
    repository_url: pulumi.Output[str],
    image_tag: str,
    docker_context: str,
    dockerfile: str,
    credentials: pulumi.Output[RegistryCredentials],
    build_date: str,
    build_cache: bool = False,
    opts: pulumi.ResourceOptions | None = None,
) -> pulumi_docker.Image:
    """Build the image from ``docker_context`` and push it to ``repository_url``."""
    cache_from = None
    if build_cache:
        cache_from = pulumi_docker.CacheFromArgs(images=[cache_ref(repository_url)])

    return pulumi_docker.Image(
        resource_name,
        image_name=image_name(repository_url, image_tag),
        build=pulumi_docker.DockerBuildArgs(
            context=docker_context,
            dockerfile=dockerfile,
            platform=PLATFORM,
            args=build_args(build_date, build_cache),
            cache_from=cache_from,
        ),
        registry=pulumi_docker.RegistryArgs(
            server=repository_url,
            username=credentials.apply(lambda c: c.username),
            password=pulumi.Output.secret(credentials.apply(lambda c: c.password)),
        ),
        skip_push=False,
        opts=opts,
    )


def create_cache_export(
    resource_prefix: str,
    image: pulumi_docker.Image,
    repository_url: pulumi.Output[str],
    credentials: pulumi.Output[RegistryCredentials],
    opts: pulumi.ResourceOptions | None = None,
) -> pulumi_docker.RegistryImage:
    """Re-tag the built image as ``:cache`` and push it to the same repository.

    The push is triggered again whenever the built image's digest changes.
    """
    parent = opts.parent if opts else None
    docker_provider = pulumi_docker.Provider(
        f"{resource_prefix}-cache-docker",
        registry_auth=[
            pulumi_docker.ProviderRegistryAuthArgs(
                address=repository_url,
                username=credentials.apply(lambda c: c.username),
                password=pulumi.Output.secret(credentials.apply(lambda c: c.password)),
            )
        ],
        opts=pulumi.ResourceOptions(parent=parent),
    )
    child_opts = pulumi.ResourceOptions(parent=parent, provider=docker_provider)
    cache_tag = pulumi_docker.Tag(
        f"{resource_prefix}-cache-tag",
        source_image=image.image_name,
        target_image=cache_ref(repository_url),
        opts=child_opts,
    )
    return pulumi_docker.RegistryImage(
        f"{resource_prefix}-cache-push",
        name=cache_tag.target_image,
        keep_remotely=True,
        triggers={"digest": image.repo_digest},
        opts=child_opts,
    )
