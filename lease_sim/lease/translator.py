from __future__ import annotations
from typing import Dict


class AddressTranslator:
    """
    Maps block references into a dense virtual block space.

    References get virtual block numbers in first-seen order, and the virtual
    address is the block number shifted past the offset bits. Accesses sharing
    a reference land on one block; different references never alias.
    """

    def __init__(self, offset_bits: int):
        self.offset_bits = offset_bits
        self._blocks: Dict[int, int] = {}

    def translate(self, reference: int) -> int:
        block = self._blocks.get(reference)
        if block is None:
            block = len(self._blocks)
            self._blocks[reference] = block
        return block << self.offset_bits

    def __len__(self) -> int:
        return len(self._blocks)

    def reset(self):
        self._blocks.clear()
