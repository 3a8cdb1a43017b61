from __future__ import annotations
from typing import NamedTuple

from ..errors import InvalidAddress


class BlockAddress(NamedTuple):
    tag: int
    set_index: int
    offset: int


class AddressDecomposer:
    """Splits addresses into tag, set index and block offset with bit masks."""

    def __init__(self, offset_bits: int, set_bits: int):
        if offset_bits < 0 or set_bits < 0:
            raise InvalidAddress(
                f"Bit lengths must not be negative (offset={offset_bits}, set={set_bits})."
            )
        self.offset_bits = offset_bits
        self.index_bits = set_bits
        self.offset_mask = (1 << offset_bits) - 1
        self.index_mask = ((1 << set_bits) - 1) << offset_bits

    def decompose(self, address: int) -> BlockAddress:
        """Decomposes an address into tag, index, and offset."""
        if isinstance(address, bool) or not isinstance(address, int):
            raise InvalidAddress(f"Address must be an integer, got {address!r}.")
        if address < 0:
            raise InvalidAddress(f"Address must not be negative, got {address}.")
        offset = address & self.offset_mask
        index = (address & self.index_mask) >> self.offset_bits
        tag = address >> (self.offset_bits + self.index_bits)
        return BlockAddress(tag, index, offset)

    def reconstruct(self, tag: int, index: int) -> int:
        """Reconstructs the block start address from tag and index."""
        return (tag << (self.index_bits + self.offset_bits)) | (index << self.offset_bits)


def decompose(address: int, offset_bits: int, set_bits: int) -> BlockAddress:
    return AddressDecomposer(offset_bits, set_bits).decompose(address)
