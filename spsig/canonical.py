"""
Canonical forms of the parts of a request that SigV4 signs.

Every function here is pure: it takes the raw request pieces and returns the
exact string that goes into the canonical request. Sorting is always done on
Python strings, i.e. by code point, never by locale.
"""

import re
from typing import Dict, List, Mapping
from urllib.parse import SplitResult, quote, unquote_to_bytes, urlsplit

from .errors import MalformedRequest

_DEFAULT_PORTS = {'http': 80, 'https': 443}

# An existing percent-escape in a path segment, kept as-is
_ESCAPE_RE = re.compile(r'(%[0-9A-Fa-f]{2})')


def uri_encode(value: str) -> str:
    """Percent-encode everything outside ``A-Z a-z 0-9 - _ . ~``.

    Non-ASCII characters are encoded as their UTF-8 bytes, with uppercase hex.
    """
    return quote(value, safe='')


def split_url(url: str) -> SplitResult:
    """Split ``url`` and check it has everything the signer needs."""
    if not isinstance(url, str) or not url:
        raise MalformedRequest('Request URL is missing')
    try:
        parts = urlsplit(url)
        # .port validates the port lazily, force it here
        parts.port
    except ValueError as e:
        raise MalformedRequest(f'Unparsable request URL: {e}') from e
    if not parts.scheme or not parts.hostname:
        raise MalformedRequest(f'Request URL has no scheme or host: {url!r}')
    return parts


def canonical_host(parts: SplitResult) -> str:
    """Value of the ``host`` header for a split URL.

    Userinfo is dropped, the name is lower-cased, IPv6 literals keep their
    brackets, internationalized names become punycode and the port is left
    out when it is the scheme's default.
    """
    host = parts.hostname
    if not host:
        raise MalformedRequest('Request URL has no host')
    if ':' in host:
        host = f'[{host}]'
    elif not host.isascii():
        try:
            host = host.encode('idna').decode('ascii')
        except UnicodeError as e:
            raise MalformedRequest(f'Invalid internationalized host name: {e}') from e
    port = parts.port
    if port is not None and port != _DEFAULT_PORTS.get(parts.scheme.lower()):
        host = f'{host}:{port}'
    return host


def _encode_segment(segment: str) -> str:
    pieces = _ESCAPE_RE.split(segment)
    # split() with a group puts the escapes at the odd indices
    return ''.join(
        piece.upper() if i % 2 else uri_encode(piece)
        for i, piece in enumerate(pieces)
    )


def canonical_uri(path: str) -> str:
    """Encode each path segment, leaving existing ``%XX`` escapes alone.

    The path is not normalized: dot segments and repeated slashes are kept.
    """
    if not path:
        return '/'
    return '/'.join(_encode_segment(segment) for segment in path.split('/'))


def _encode_query_part(part: str) -> str:
    # Decoded to bytes, so escapes that are not valid UTF-8 survive unchanged
    return quote(unquote_to_bytes(part.replace('+', ' ')), safe='')


def canonical_query_string(query: str) -> str:
    """Decode the query, re-encode every name and value and sort the pairs.

    Pairs are ordered by encoded name, then by encoded value, so repeated
    names have a stable order too.
    """
    if not query:
        return ''
    encoded = sorted(
        (_encode_query_part(name), _encode_query_part(value))
        for name, _, value in (pair.partition('=') for pair in query.split('&') if pair)
    )
    return '&'.join(f'{name}={value}' for name, value in encoded)


def _trimall(value: str) -> str:
    return ' '.join(value.split())


def normalize_headers(headers: Mapping[str, str]) -> Dict[str, str]:
    """Lower-case names and trim values, merging names that differ only in case.

    Merged values are joined with ``,`` in the order they appear in ``headers``.
    """
    merged: Dict[str, List[str]] = {}
    for name, value in headers.items():
        lname = name.strip().lower()
        if not lname:
            raise MalformedRequest('Header with an empty name')
        merged.setdefault(lname, []).append(_trimall(str(value)))
    return {name: ','.join(values) for name, values in merged.items()}


def canonical_headers(headers: Mapping[str, str]) -> str:
    """One ``name:value`` line per header, sorted by name.

    Every line, including the last one, ends with a newline.
    """
    normalized = normalize_headers(headers)
    return ''.join(f'{name}:{normalized[name]}\n' for name in sorted(normalized))


def signed_header_names(headers: Mapping[str, str]) -> str:
    return ';'.join(sorted(normalize_headers(headers)))
