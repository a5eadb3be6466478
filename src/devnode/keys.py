"""Secret keys announced by the node and the addresses derived from them."""

from functools import cached_property

from ecdsa import SECP256k1, SigningKey
from eth_utils import keccak, to_checksum_address
from pydantic import BaseModel, field_validator

SECRET_KEY_LENGTH = 32


def secret_key_to_address(secret_key: bytes) -> str:
    """Derive the checksummed account address for a secp256k1 secret key.

    Args:
        secret_key: 32-byte big-endian scalar.

    Returns:
        EIP-55 checksummed address string.

    Raises:
        ValueError: If the key is the wrong length or outside the curve order.
    """
    if len(secret_key) != SECRET_KEY_LENGTH:
        raise ValueError(
            f"secret key must be {SECRET_KEY_LENGTH} bytes, got {len(secret_key)}"
        )
    scalar = int.from_bytes(secret_key, "big")
    if not 0 < scalar < SECP256k1.order:
        raise ValueError("secret key is outside the secp256k1 curve order")

    signing_key = SigningKey.from_string(secret_key, curve=SECP256k1)
    # Uncompressed public key without the 0x04 prefix: X || Y
    public_key = signing_key.get_verifying_key().to_string()
    return to_checksum_address(keccak(public_key)[-20:])


class KeyPair(BaseModel, frozen=True):
    """A secret key and its account address.

    Only the secret key is stored; the address is derived from it on first use.
    """

    secret_key: bytes

    @field_validator("secret_key")
    @classmethod
    def _check_secret_key(cls, value: bytes) -> bytes:
        secret_key_to_address(value)
        return value

    @classmethod
    def from_hex(cls, value: str) -> "KeyPair":
        """Build a key pair from a hex string, with or without a 0x prefix."""
        if value[:2] in ("0x", "0X"):
            value = value[2:]
        return cls(secret_key=bytes.fromhex(value))

    @cached_property
    def address(self) -> str:
        return secret_key_to_address(self.secret_key)

    @property
    def secret_key_hex(self) -> str:
        return "0x" + self.secret_key.hex()

    def __repr__(self) -> str:
        return f"KeyPair(address={self.address})"
