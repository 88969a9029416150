"""
Credentials used to sign requests.

A ``Credentials`` value is immutable and is shared by every ``sign()`` call
a signer makes. The secret key and session token never appear in its
``repr()``, so a credentials object can be logged or put in an exception
message without leaking either of them.
"""

import enum
import os
from dataclasses import dataclass, field
from typing import Mapping, Optional, Union

from dotenv import dotenv_values

from .errors import InvalidCredentials


class Service(str, enum.Enum):
    """Service names used in the credential scope."""

    EXECUTE_API = 'execute-api'
    STS = 'sts'
    IAM = 'iam'
    LAMBDA = 'lambda'
    DYNAMODB = 'dynamodb'
    EC2 = 'ec2'

    def __str__(self) -> str:
        return self.value


def service_name(service: Union[str, Service]) -> str:
    return service.value if isinstance(service, Service) else str(service)


@dataclass(frozen=True)
class Credentials:
    access_key: str
    secret_key: str = field(repr=False)
    region: str
    service: str = Service.EXECUTE_API.value
    session_token: Optional[str] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        # Normalize enum members so the scope is always built from a plain str
        object.__setattr__(self, 'service', service_name(self.service))

    def validate(self) -> 'Credentials':
        """Raise ``InvalidCredentials`` naming the first empty field."""
        for name in ('access_key', 'secret_key', 'region', 'service'):
            value = getattr(self, name)
            if not isinstance(value, str) or not value.strip():
                raise InvalidCredentials(f"Credential field '{name}' is missing or empty")
        return self

    @property
    def is_temporary(self) -> bool:
        return bool(self.session_token)

    @classmethod
    def from_env(
            cls,
            service: Union[str, Service] = Service.EXECUTE_API,
            environ: Optional[Mapping[str, str]] = None,
            dotenv_path: Optional[str] = None,
    ) -> 'Credentials':
        """Load credentials from the standard AWS environment variables.

        Values from ``dotenv_path`` are used only where the environment does
        not set the variable. The process environment is never modified.
        """
        values = {}
        if dotenv_path:
            values.update({k: v for k, v in dotenv_values(dotenv_path).items() if v is not None})
        values.update(os.environ if environ is None else environ)

        credentials = cls(
            access_key=values.get('AWS_ACCESS_KEY_ID', ''),
            secret_key=values.get('AWS_SECRET_ACCESS_KEY', ''),
            region=values.get('AWS_REGION') or values.get('AWS_DEFAULT_REGION', ''),
            service=service,
            session_token=values.get('AWS_SESSION_TOKEN') or None,
        )
        return credentials.validate()
