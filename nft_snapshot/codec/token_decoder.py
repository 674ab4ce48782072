import binascii
import logging
import string
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

TOKEN_ID_HEX_LENGTH = 64

# NFTokenID layout in hex characters: flags(4) + fee(4) | issuer(40) | taxon(8) | sequence(8)
_ISSUER_SLICE = slice(8, 48)
_SEQUENCE_SLICE = slice(56, 64)

_HEX_DIGITS = frozenset(string.hexdigits)


class MalformedIdentifierError(ValueError):
    """Raised when an NFTokenID or its URI field cannot be decoded."""

    def __init__(self, token_id, reason: str):
        self.token_id = token_id
        self.reason = reason
        super().__init__(f'Malformed NFTokenID {token_id!r}: {reason}')


@dataclass(frozen=True)
class DecodedToken:
    issuer_id: bytes
    seq: int
    uri: str


def is_valid_token_id(token_id) -> bool:
    return (
        isinstance(token_id, str)
        and len(token_id) == TOKEN_ID_HEX_LENGTH
        and all(c in _HEX_DIGITS for c in token_id)
    )


def decode_uri(uri_hex: Optional[str]) -> str:
    """Decode the hex URI field to text; absent or empty yields ''."""
    if not uri_hex:
        return ''
    raw = binascii.unhexlify(uri_hex)
    return raw.decode('utf-8', errors='replace')


def decode_token(token_id: str, uri_hex: Optional[str] = None) -> DecodedToken:
    """
    Split a 32-byte NFTokenID into issuer account id and sequence, and
    decode the accompanying hex URI.

    Args:
        token_id: 64 hex characters, either case
        uri_hex: Optional hex encoding of the URI bytes

    Returns:
        DecodedToken with the 20 issuer bytes, the big-endian uint32 sequence and the URI text

    Raises:
        MalformedIdentifierError: If token_id is not exactly 64 hex characters or uri_hex is not hex
    """
    if not is_valid_token_id(token_id):
        length = len(token_id) if isinstance(token_id, str) else 'n/a'
        raise MalformedIdentifierError(token_id, f'expected {TOKEN_ID_HEX_LENGTH} hex characters (length {length})')

    issuer_id = bytes.fromhex(token_id[_ISSUER_SLICE])
    seq = int.from_bytes(bytes.fromhex(token_id[_SEQUENCE_SLICE]), 'big')

    try:
        uri = decode_uri(uri_hex)
    except (binascii.Error, ValueError, TypeError) as e:
        raise MalformedIdentifierError(token_id, f'URI is not valid hex: {e}') from e

    return DecodedToken(issuer_id=issuer_id, seq=seq, uri=uri)
