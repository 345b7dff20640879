"""Registry credentials derived from an ECR authorization token.

The token is base64 of ``username:password``. Credentials live only in the
output chain feeding the image push and are never stored.
"""

import base64
import binascii
from dataclasses import dataclass

import pulumi
import pulumi_aws


class RegistryAuthError(ValueError):
    """Authorization token could not be turned into a username/password pair."""


@dataclass(frozen=True)
class RegistryCredentials:
    username: str
    password: str


def decode_authorization_token(token: str | None) -> RegistryCredentials:
    """Decode a base64 ``username:password`` authorization token.

    Raises:
        RegistryAuthError: If the token is missing, not base64, not UTF-8,
            or does not contain a non-empty username and password.
    """
    if not token:
        raise RegistryAuthError("authorization token is empty")
    try:
        decoded = base64.b64decode(token, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as e:
        raise RegistryAuthError(f"authorization token is not valid base64: {e}") from e

    username, sep, password = decoded.partition(":")
    if not sep or not username or not password:
        raise RegistryAuthError("authorization token is not of the form username:password")
    return RegistryCredentials(username=username, password=password)


def registry_credentials(
    registry_id: pulumi.Input[str],
    aws_provider: pulumi_aws.Provider | None = None,
) -> pulumi.Output[RegistryCredentials]:
    """Exchange the registry id for an authorization token and decode it.

    Resolves only after ``registry_id`` is known, so anything built from the
    result waits on the repository. Errors are not caught here.
    """
    token = pulumi_aws.ecr.get_authorization_token_output(
        registry_id=registry_id,
        opts=pulumi.InvokeOptions(provider=aws_provider),
    )
    return token.authorization_token.apply(decode_authorization_token)
