from .address_codec import AddressCache, AddressCodec, encode_address, decode_address, LEDGER_ALPHABET
from .token_decoder import DecodedToken, MalformedIdentifierError, decode_token, is_valid_token_id

__all__ = [
    'AddressCache',
    'AddressCodec',
    'encode_address',
    'decode_address',
    'LEDGER_ALPHABET',
    'DecodedToken',
    'MalformedIdentifierError',
    'decode_token',
    'is_valid_token_id',
]
