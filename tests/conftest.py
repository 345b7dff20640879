"""Pulumi runtime mocks shared by all tests.

Resources and invokes are answered in-process so outputs resolve without an engine.
"""

import base64
from typing import Any

import pulumi
from pulumi.runtime.rpc import _special_sig_key
import pytest

ACCOUNT_ID = "123456789012"
REGISTRY_HOST = f"{ACCOUNT_ID}.dkr.ecr.us-east-1.amazonaws.com"
FAKE_DIGEST = "sha256:" + "ab" * 32
VALID_TOKEN = base64.b64encode(b"AWS:s3cr3t").decode()


class ImageStackMocks(pulumi.runtime.Mocks):
    """Echo inputs back as outputs and fill in the ECR/docker computed fields."""

    account_id = ACCOUNT_ID
    registry_host = REGISTRY_HOST
    digest = FAKE_DIGEST

    def __init__(self) -> None:
        self.resources: dict[str, dict[str, Any]] = {}
        self.authorization_token = VALID_TOKEN

    def resource_input(self, name: str, key: str) -> Any:
        """Input ``key`` of resource ``name``, with any secret envelope stripped."""
        value = self.resources[name]["inputs"][key]
        if isinstance(value, dict) and _special_sig_key in value:
            return value["value"]
        return value

    def new_resource(self, args: pulumi.runtime.MockResourceArgs) -> tuple[str | None, dict]:
        outputs = dict(args.inputs)
        self.resources[args.name] = {"type": args.typ, "inputs": dict(args.inputs)}
        if args.typ == "aws:ecr/repository:Repository":
            outputs.update(
                registryId=ACCOUNT_ID,
                repositoryUrl=f"{REGISTRY_HOST}/{args.inputs['name']}",
                arn=f"arn:aws:ecr:us-east-1:{ACCOUNT_ID}:repository/{args.inputs['name']}",
            )
        elif args.typ == "docker:index/image:Image":
            repo = args.inputs["imageName"].rsplit(":", 1)[0]
            outputs["repoDigest"] = f"{repo}@{FAKE_DIGEST}"
        return f"{args.name}_id", outputs

    def call(self, args: pulumi.runtime.MockCallArgs) -> tuple[dict, list | None]:
        if args.token == "aws:ecr/getAuthorizationToken:getAuthorizationToken":
            return (
                {
                    "authorizationToken": self.authorization_token,
                    "expiresAt": "2099-01-01T00:00:00Z",
                    "id": args.args.get("registryId", ACCOUNT_ID),
                    "password": "s3cr3t",
                    "proxyEndpoint": f"https://{REGISTRY_HOST}",
                    "registryId": args.args.get("registryId", ACCOUNT_ID),
                    "userName": "AWS",
                },
                [],
            )
        return {}, []


MOCKS = ImageStackMocks()
pulumi.runtime.set_mocks(MOCKS, project="ecr-image", stack="test", preview=False)


@pytest.fixture
def mocks() -> ImageStackMocks:
    MOCKS.resources.clear()
    return MOCKS


@pytest.fixture
def malformed_token(mocks: ImageStackMocks):
    """Serve a non-base64 authorization token for the duration of one test."""
    mocks.authorization_token = "not base64!!"
    yield mocks
    mocks.authorization_token = VALID_TOKEN

