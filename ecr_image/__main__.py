"""
Image stack: one ECR repository with a keep-last-10 retention policy and the
client image built and pushed into it. The image tag comes from config `version`.
"""

import pulumi

from ecr_image.component import ImageManagement, ImageManagementArgs
from ecr_image.config import (
    APP_NAME,
    DOCKER_CONTEXT,
    DOCKERFILE,
    RESOURCE_NAME,
    create_aws_provider,
    load_stack_config,
)

config = load_stack_config()
aws_provider = create_aws_provider(APP_NAME, config.region)

image = ImageManagement(
    RESOURCE_NAME,
    ImageManagementArgs(
        app_name=APP_NAME,
        docker_context=DOCKER_CONTEXT,
        dockerfile=DOCKERFILE,
        image_tag=config.version,
        env=config.env,
        build_cache=config.build_cache,
    ),
    aws_provider=aws_provider,
)

# Outputs
pulumi.export("repository_url", image.repository_url)
pulumi.export("repository_name", image.repository_name)
pulumi.export("image_uri", image.image_uri)
pulumi.export("image_digest", image.image_digest)
pulumi.export("image_ref", image.image_ref)
