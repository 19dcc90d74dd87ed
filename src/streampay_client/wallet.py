from __future__ import annotations

from eth_account import Account
from eth_utils import to_checksum_address

from .settings import Settings
from .validation import is_valid_address


def address_from_key(secret_key: str) -> str:
    key = secret_key.strip()
    if not key.startswith("0x") or len(key) != 66:
        raise ValueError("SENDER_PRIVATE_KEY must be a 0x-prefixed 32-byte hex key")
    try:
        return Account.from_key(key).address
    except ValueError as exc:
        raise ValueError("SENDER_PRIVATE_KEY is not a usable secp256k1 key") from exc


def resolve_sender_address(settings: Settings) -> str:
    """SENDER_ADDRESS if set, otherwise the address of SENDER_PRIVATE_KEY, otherwise ""."""
    if settings.sender_address.strip():
        address = settings.sender_address.strip()
        if not is_valid_address(address):
            raise ValueError("SENDER_ADDRESS must be 0x + 40 hex chars")
        return to_checksum_address(address)
    if settings.sender_private_key.strip():
        return address_from_key(settings.sender_private_key)
    return ""
