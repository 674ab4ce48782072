import hashlib
import logging
from typing import Dict, Optional, Union

import base58

logger = logging.getLogger(__name__)

# Ledger account alphabet; same 58 symbols as Bitcoin's, different order ('r' is zero).
LEDGER_ALPHABET = b'rpshnaf39wBUDNEGHJKLM4PQRST7VWXYZ2bcdeCg65jkm8oFqi1tuvAxyz'
ACCOUNT_ID_LENGTH = 20
ACCOUNT_VERSION = b'\x00'
CHECKSUM_LENGTH = 4


def _checksum(versioned: bytes) -> bytes:
    return hashlib.sha256(hashlib.sha256(versioned).digest()).digest()[:CHECKSUM_LENGTH]


def encode_address(account_id: bytes) -> str:
    """
    Encode a 20-byte account id as a classic ledger address.

    Base58Check: version byte 0x00, the id, then the first four bytes of a
    double SHA-256 over both. Leading zero bytes become leading 'r's.

    Raises:
        ValueError: If account_id is not exactly 20 bytes
    """
    if len(account_id) != ACCOUNT_ID_LENGTH:
        raise ValueError(f'Account id must be {ACCOUNT_ID_LENGTH} bytes, got {len(account_id)}')
    versioned = ACCOUNT_VERSION + bytes(account_id)
    payload = versioned + _checksum(versioned)
    return base58.b58encode(payload, alphabet=LEDGER_ALPHABET).decode('ascii')


def decode_address(address: str) -> bytes:
    """
    Decode a classic address back to its 20-byte account id.

    Raises:
        ValueError: On foreign characters, wrong length, wrong version or bad checksum
    """
    payload = base58.b58decode(address, alphabet=LEDGER_ALPHABET)
    if len(payload) != 1 + ACCOUNT_ID_LENGTH + CHECKSUM_LENGTH:
        raise ValueError(f'Address {address!r} decodes to {len(payload)} bytes')
    versioned, checksum = payload[:-CHECKSUM_LENGTH], payload[-CHECKSUM_LENGTH:]
    if versioned[:1] != ACCOUNT_VERSION:
        raise ValueError(f'Address {address!r} has unexpected version byte {versioned[0]:#04x}')
    if _checksum(versioned) != checksum:
        raise ValueError(f'Address {address!r} failed checksum verification')
    return versioned[1:]


class AddressCache:
    """Issuer hex id -> address memo. Lives for one run, never evicts."""

    def __init__(self):
        self._addresses: Dict[str, str] = {}

    def get(self, issuer_hex: str) -> Optional[str]:
        return self._addresses.get(issuer_hex.upper())

    def put(self, issuer_hex: str, address: str):
        self._addresses[issuer_hex.upper()] = address

    def __len__(self) -> int:
        return len(self._addresses)


class AddressCodec:

    def __init__(self, cache: Optional[AddressCache] = None):
        self.cache = cache if cache is not None else AddressCache()

    def address_for(self, account_id: Union[bytes, str]) -> str:
        if isinstance(account_id, str):
            account_id = bytes.fromhex(account_id)
        key = account_id.hex()
        address = self.cache.get(key)
        if address is None:
            address = encode_address(account_id)
            self.cache.put(key, address)
            logger.debug(f'Derived issuer address {address} for {key}')
        return address
