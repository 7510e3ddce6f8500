from typing import Optional

from eth_utils import is_address, to_checksum_address

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


def checksum(value: str) -> str:
    """Return the EIP-55 checksum form of an address.

    Raises:
        ValueError: If the value is not a 20-byte hex address
    """
    if not is_address(value):
        raise ValueError(f"Invalid address {value!r}")
    return to_checksum_address(value)


def resolver_or_none(value: Optional[str]) -> Optional[str]:
    """Normalize a resolver address, mapping the zero address to None."""
    if value is None:
        return None
    value = checksum(value)
    if value == ZERO_ADDRESS:
        return None
    return value
