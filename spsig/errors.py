"""Exceptions raised while signing a request.

Every error is raised synchronously, before any part of the signed request
is produced. None of them is worth retrying without fixing the input first.
"""


class SigningError(Exception):
    """Base class for all signing failures."""

    retryable = False


class InvalidCredentials(SigningError):
    """Access key, secret key, region or service is missing or empty."""


class MalformedRequest(SigningError):
    """The request cannot be canonicalized (bad URL, missing host, bad body)."""


class ClockUnavailable(SigningError):
    """The system clock could not be read."""
