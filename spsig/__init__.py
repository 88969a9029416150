"""
AWS Signature Version 4 for the Selling Partner API

This package signs outbound HTTP requests with AWS Signature Version 4. It
has no dependency on botocore for signing and performs no I/O: callers hand
it a request and get back the same request with the authentication headers
added.
"""

from .credentials import Credentials, Service
from .errors import ClockUnavailable, InvalidCredentials, MalformedRequest, SigningError
from .sigv4 import (
    Headers,
    Request,
    SigV4Signer,
    derive_signing_key,
    hash_payload,
    sign,
)

__version__ = "0.1.0"
__all__ = [
    "SigV4Signer",
    "Service",
    "Headers",
    "Credentials",
    "Request",
    "sign",
    "hash_payload",
    "derive_signing_key",
    "SigningError",
    "InvalidCredentials",
    "MalformedRequest",
    "ClockUnavailable",
]
