from __future__ import annotations
from dataclasses import dataclass, field

from ..errors import ConfigError


@dataclass(frozen=True)
class CacheConfig:
    """Geometry of a set-associative cache.

    The declared ``cache_size`` must equal
    ``associativity * 2**set_bits * 2**offset_bits``.
    """
    associativity: int = 128
    offset_bits: int = 2
    set_bits: int = 7
    cache_size: int = 65536

    # Derived properties
    num_sets: int = field(init=False)
    block_size: int = field(init=False)
    num_lines: int = field(init=False)

    def __post_init__(self):
        for name in ("associativity", "offset_bits", "set_bits", "cache_size"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigError(f"{name} must be an integer, got {value!r}.")
        if not self.associativity > 0:
            raise ConfigError("Associativity must be positive.")
        if self.offset_bits < 0:
            raise ConfigError("Offset bit length must not be negative.")
        if self.set_bits < 0:
            raise ConfigError("Set index bit length must not be negative.")

        num_sets = 1 << self.set_bits
        block_size = 1 << self.offset_bits
        expected = self.associativity * num_sets * block_size
        if expected != self.cache_size:
            raise ConfigError(
                f"Cache geometry mismatch: associativity {self.associativity} x "
                f"{num_sets} sets x {block_size}-byte blocks = {expected}, "
                f"but cache size is {self.cache_size}."
            )

        # frozen dataclass, so derived fields go through object.__setattr__
        object.__setattr__(self, "num_sets", num_sets)
        object.__setattr__(self, "block_size", block_size)
        object.__setattr__(self, "num_lines", self.associativity * num_sets)
