"""
AWS Signature Version 4 request signing.

The signer turns a request and a set of long-lived credentials into the
``Authorization``, ``x-amz-date``, ``host`` and ``x-amz-content-sha256``
headers AWS expects. The secret key itself never leaves this module; only
an HMAC chain derived from it for a single day, region and service is used
to sign.

Signing is a pure computation. The only outside state it reads is the system
clock, and only when the caller does not pass ``now`` explicitly.
"""

import datetime
import hashlib
import hmac
import logging
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Union

from .canonical import (
    canonical_headers,
    canonical_host,
    canonical_query_string,
    canonical_uri,
    normalize_headers,
    signed_header_names,
    split_url,
)
from .credentials import Credentials, Service
from .errors import ClockUnavailable, InvalidCredentials, MalformedRequest

logger = logging.getLogger(__name__)

ALGORITHM = 'AWS4-HMAC-SHA256'
SCOPE_TERMINATOR = 'aws4_request'
AMZ_DATE_FORMAT = '%Y%m%dT%H%M%SZ'
DATE_STAMP_FORMAT = '%Y%m%d'
EMPTY_SHA256 = hashlib.sha256(b'').hexdigest()

Headers = Dict[str, str]
Body = Union[bytes, bytearray, memoryview, str, None]

# Headers the signer sets itself. Case variants supplied by the caller are
# replaced rather than signed.
_MANAGED_HEADERS = frozenset({'authorization', 'x-amz-date', 'host', 'x-amz-content-sha256'})
_SECURITY_TOKEN_HEADER = 'x-amz-security-token'


@dataclass(frozen=True)
class Request:
    """An HTTP request as seen by the signer.

    ``headers`` is copied on construction, so the caller's mapping is never
    touched. A ``str`` body is transmitted and hashed as UTF-8.
    """

    method: str
    url: str
    headers: Headers = field(default_factory=dict)
    body: Body = None

    def __post_init__(self) -> None:
        object.__setattr__(self, 'headers', dict(self.headers or {}))

    def with_headers(self, headers: Mapping[str, str]) -> 'Request':
        return Request(self.method, self.url, dict(headers), self.body)


def _body_bytes(body: Body) -> bytes:
    if body is None:
        return b''
    if isinstance(body, str):
        return body.encode('utf-8')
    if isinstance(body, (bytes, bytearray, memoryview)):
        return bytes(body)
    raise MalformedRequest(
        f'Request body must be bytes or str, not {type(body).__name__}; '
        'serialize it before signing'
    )


def hash_payload(body: Body) -> str:
    """Lowercase hex SHA-256 of the body, or of the empty string when there is none."""
    return hashlib.sha256(_body_bytes(body)).hexdigest()


def _hmac(key: bytes, msg: str) -> bytes:
    return hmac.new(key, msg.encode('utf-8'), hashlib.sha256).digest()


def derive_signing_key(secret_key: str, date_stamp: str, region: str, service: str) -> bytes:
    """Derive the signing key for one ``(date_stamp, region, service)`` scope.

    The key changes every UTC day and must not be reused across days.
    """
    if not secret_key:
        raise InvalidCredentials("Credential field 'secret_key' is missing or empty")
    k_date = _hmac(f'AWS4{secret_key}'.encode('utf-8'), date_stamp)
    k_region = _hmac(k_date, region)
    k_service = _hmac(k_region, service)
    return _hmac(k_service, SCOPE_TERMINATOR)


def _system_time() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def _utc(now: Optional[datetime.datetime]) -> datetime.datetime:
    if now is None:
        try:
            return _system_time()
        except (OSError, OverflowError, ValueError) as e:
            raise ClockUnavailable(f'Unable to read the system clock: {e}') from e
    if now.tzinfo is None:
        return now.replace(tzinfo=datetime.timezone.utc)
    return now.astimezone(datetime.timezone.utc)


def amz_date(now: datetime.datetime) -> str:
    return _utc(now).strftime(AMZ_DATE_FORMAT)


def date_stamp(now: datetime.datetime) -> str:
    return _utc(now).strftime(DATE_STAMP_FORMAT)


def credential_scope(stamp: str, region: str, service: str) -> str:
    return f'{stamp}/{region}/{service}/{SCOPE_TERMINATOR}'


def build_canonical_request(
        method: str,
        path: str,
        query: str,
        headers: Mapping[str, str],
        payload_hash: str,
) -> str:
    # canonical_headers() ends with a newline, so joining leaves the blank
    # line that separates the header block from the signed header names.
    return '\n'.join([
        method,
        canonical_uri(path),
        canonical_query_string(query),
        canonical_headers(headers),
        signed_header_names(headers),
        payload_hash,
    ])


def build_string_to_sign(timestamp: str, scope: str, canonical_request: str) -> str:
    return '\n'.join([
        ALGORITHM,
        timestamp,
        scope,
        hashlib.sha256(canonical_request.encode('utf-8')).hexdigest(),
    ])


def _redact(text: str, secret: Optional[str]) -> str:
    return text.replace(secret, '<redacted>') if secret else text


class SigV4Signer:
    """Signs requests with one set of credentials.

    A signer holds nothing but its immutable credentials, so a single
    instance can be shared between threads and reused for every request
    (and every retry) the process makes.
    """

    def __init__(
            self,
            access_key: str,
            secret_key: str,
            region: str,
            service: Union[str, Service] = Service.EXECUTE_API,
            token: Optional[str] = None
    ):
        self._credentials = Credentials(
            access_key=access_key,
            secret_key=secret_key,
            region=region,
            service=service,
            session_token=token,
        ).validate()

    @classmethod
    def from_credentials(cls, credentials: Credentials) -> 'SigV4Signer':
        return cls(
            credentials.access_key,
            credentials.secret_key,
            credentials.region,
            credentials.service,
            credentials.session_token,
        )

    @property
    def credentials(self) -> Credentials:
        return self._credentials

    def __repr__(self) -> str:
        return f'{type(self).__name__}({self._credentials!r})'

    def _managed_headers(self) -> frozenset:
        if self._credentials.session_token:
            return _MANAGED_HEADERS | {_SECURITY_TOKEN_HEADER}
        return _MANAGED_HEADERS

    def sign(self, request: Request, now: Optional[datetime.datetime] = None) -> Request:
        """Return a copy of ``request`` carrying the SigV4 headers.

        ``Authorization``, ``x-amz-date``, ``host`` and ``x-amz-content-sha256``
        are set (plus ``x-amz-security-token`` for temporary credentials),
        replacing any header of the same name in any case. Nothing else in the
        request changes.

        Raises:
            MalformedRequest: bad method, URL, header name or body type.
            ClockUnavailable: ``now`` was omitted and the clock can't be read.
        """
        creds = self._credentials
        managed = self._managed_headers()

        # Everything that can fail is checked before anything is built
        method = (request.method or '').strip().upper()
        if not method:
            raise MalformedRequest('Request method is missing')
        parts = split_url(request.url)
        host = canonical_host(parts)
        payload_hash = hash_payload(request.body)
        timestamp = _utc(now)

        x_amz_date = amz_date(timestamp)
        stamp = date_stamp(timestamp)

        to_sign = {
            name: value for name, value in request.headers.items()
            if name.strip().lower() not in managed
        }
        to_sign['host'] = host
        to_sign['x-amz-date'] = x_amz_date
        if creds.session_token:
            to_sign[_SECURITY_TOKEN_HEADER] = creds.session_token
        to_sign = normalize_headers(to_sign)

        canonical_request = build_canonical_request(
            method, parts.path, parts.query, to_sign, payload_hash
        )
        scope = credential_scope(stamp, creds.region, creds.service)
        string_to_sign = build_string_to_sign(x_amz_date, scope, canonical_request)
        signing_key = derive_signing_key(creds.secret_key, stamp, creds.region, creds.service)
        signature = hmac.new(signing_key, string_to_sign.encode('utf-8'), hashlib.sha256).hexdigest()

        logger.debug('CanonicalRequest:\n%s', _redact(canonical_request, creds.session_token))
        logger.debug('StringToSign:\n%s', string_to_sign)
        logger.debug('Signature:\n%s', signature)

        authorization = (
            f'{ALGORITHM} Credential={creds.access_key}/{scope}, '
            f'SignedHeaders={signed_header_names(to_sign)}, '
            f'Signature={signature}'
        )

        headers = {
            name: value for name, value in request.headers.items()
            if name.strip().lower() not in managed
        }
        headers['Authorization'] = authorization
        headers['x-amz-date'] = x_amz_date
        headers['host'] = host
        headers['x-amz-content-sha256'] = payload_hash
        if creds.session_token:
            headers[_SECURITY_TOKEN_HEADER] = creds.session_token
        return request.with_headers(headers)

    def create_headers(
            self,
            method: str,
            url: str,
            headers: Optional[Mapping[str, str]] = None,
            body: Body = None,
            now: Optional[datetime.datetime] = None,
    ) -> Headers:
        """Sign a request given as its parts and return only its headers."""
        return self.sign(Request(method, url, dict(headers or {}), body), now).headers


def sign(
        request: Request,
        credentials: Credentials,
        now: Optional[datetime.datetime] = None,
) -> Request:
    """Sign ``request`` with ``credentials`` at ``now`` (the system clock if omitted)."""
    return SigV4Signer.from_credentials(credentials).sign(request, now)
