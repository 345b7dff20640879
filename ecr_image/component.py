"""ImageManagement component: ECR repository, retention policy, image build/push."""

from dataclasses import dataclass

import pulumi
import pulumi_aws
import pulumi_docker

from ecr_image.build.image import (
    CACHE_TAG,
    build_timestamp,
    create_cache_export,
    create_image,
)
from ecr_image.config import DEFAULT_IMAGE_TAG
from ecr_image.registry.credentials import registry_credentials
from ecr_image.registry.ecr import (
    create_ecr_repository,
    create_lifecycle_policy,
    repository_name,
    resource_prefix,
)


@dataclass
class ImageManagementArgs:
    """Inputs for ImageManagement. ``env`` selects the env-prefixed repository name."""

    app_name: str
    docker_context: str
    dockerfile: str
    image_tag: str = DEFAULT_IMAGE_TAG
    env: str | None = None
    build_cache: bool = False

    @property
    def effective_tag(self) -> str:
        return self.image_tag or DEFAULT_IMAGE_TAG


def _digest_of(repo_digest: str | None) -> str | None:
    if not repo_digest:
        return repo_digest
    return repo_digest.split("@", 1)[-1]


class ImageManagement(pulumi.ComponentResource):
    """ECR repository with a keep-last-10 policy and an image pushed into it."""

    repository_url: pulumi.Output[str]
    repository_name: pulumi.Output[str]
    image_uri: pulumi.Output[str]
    image_digest: pulumi.Output[str]
    image_ref: pulumi.Output[str]

    def __init__(
        self,
        name: str,
        args: ImageManagementArgs,
        aws_provider: pulumi_aws.Provider | None = None,
        build_date: str | None = None,
        opts: pulumi.ResourceOptions | None = None,
    ):
        super().__init__("ecr-image:component:ImageManagement", name, None, opts)

        prefix = resource_prefix(args.app_name, args.env)
        tag = args.effective_tag
        aws_opts = pulumi.ResourceOptions(parent=self, provider=aws_provider)
        child_opts = pulumi.ResourceOptions(parent=self)

        pulumi.log.info(
            f"Declaring repository '{repository_name(args.app_name, args.env)}' with image tag '{tag}'",
            resource=self,
        )

        self.repository = create_ecr_repository(
            args.app_name,
            args.env,
            mutable_tags=[CACHE_TAG] if args.build_cache else None,
            opts=aws_opts,
        )
        self.lifecycle_policy = create_lifecycle_policy(self.repository, args.app_name, args.env, opts=aws_opts)

        # Tag, push target, cache ref and registry server all hang off this one URL.
        repository_url = self.repository.repository_url
        credentials = registry_credentials(self.repository.registry_id, aws_provider)
        self.image = create_image(
            f"{prefix}-image",
            repository_url=repository_url,
            image_tag=tag,
            docker_context=args.docker_context,
            dockerfile=args.dockerfile,
            credentials=credentials,
            build_date=build_date or build_timestamp(),
            build_cache=args.build_cache,
            opts=child_opts,
        )
        self.cache_image: pulumi_docker.RegistryImage | None = None
        if args.build_cache:
            self.cache_image = create_cache_export(prefix, self.image, repository_url, credentials, opts=child_opts)

        self.repository_url = repository_url
        self.repository_name = self.repository.name
        self.image_uri = self.image.image_name
        self.image_ref = self.image.repo_digest
        self.image_digest = self.image.repo_digest.apply(_digest_of)

        self.register_outputs(
            {
                "repository_url": self.repository_url,
                "repository_name": self.repository_name,
                "image_uri": self.image_uri,
                "image_digest": self.image_digest,
                "image_ref": self.image_ref,
            }
        )
