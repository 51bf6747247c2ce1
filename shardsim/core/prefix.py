"""
Address prefixes identifying segments of the address space.

Addresses are unsigned integers of ``ADDRESS_BITS`` bits. A ``Prefix``
names every address whose leading ``length`` bits equal ``bits``; the
empty prefix ``ROOT`` therefore covers the whole space. Prefixes are
immutable and hashable so they can key the partition map.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

#: Width of an address in bits
ADDRESS_BITS = 64

#: One past the largest address
ADDRESS_SPACE = 1 << ADDRESS_BITS


@dataclass(frozen=True, order=True)
class Prefix:
    """Leading-bit prefix of an address.

    Attributes:
        bits: Value of the leading bits, right aligned.
        length: Number of leading bits fixed by this prefix (its depth).
    """

    bits: int = 0
    length: int = 0

    def __post_init__(self):
        if not 0 <= self.length <= ADDRESS_BITS:
            raise ValueError(f"prefix length out of range: {self.length}")
        if self.bits < 0 or self.bits >> self.length:
            raise ValueError(f"prefix bits {self.bits:#x} do not fit in {self.length} bits")

    @classmethod
    def from_str(cls, text: str) -> "Prefix":
        """Parse a binary string such as ``"0110"``; ``""`` is the root."""
        if text and set(text) - {"0", "1"}:
            raise ValueError(f"invalid prefix string: {text!r}")
        return cls(int(text, 2) if text else 0, len(text))

    @property
    def depth(self) -> int:
        return self.length

    def matches(self, address: int) -> bool:
        """Return True if ``address`` falls inside this prefix."""
        if self.length == 0:
            return True
        return (address >> (ADDRESS_BITS - self.length)) == self.bits

    def is_descendant(self, other: "Prefix") -> bool:
        """Return True if this prefix is strictly longer than and extends ``other``."""
        if self.length <= other.length:
            return False
        return (self.bits >> (self.length - other.length)) == other.bits

    def pushed(self, bit: int) -> "Prefix":
        if self.length == ADDRESS_BITS:
            raise ValueError("cannot extend a full-length prefix")
        return Prefix((self.bits << 1) | (bit & 1), self.length + 1)

    def split(self) -> Tuple["Prefix", "Prefix"]:
        """Return the two children that exactly partition this prefix."""
        return self.pushed(0), self.pushed(1)

    def parent(self) -> "Prefix":
        if self.length == 0:
            raise ValueError("the root prefix has no parent")
        return Prefix(self.bits >> 1, self.length - 1)

    def sibling(self) -> "Prefix":
        if self.length == 0:
            raise ValueError("the root prefix has no sibling")
        return Prefix(self.bits ^ 1, self.length)

    def lower_bound(self) -> int:
        return self.bits << (ADDRESS_BITS - self.length)

    def upper_bound(self) -> int:
        return self.lower_bound() + self.span() - 1

    def span(self) -> int:
        """Number of addresses covered."""
        return 1 << (ADDRESS_BITS - self.length)

    def __str__(self) -> str:
        if self.length == 0:
            return ""
        return format(self.bits, f"0{self.length}b")


ROOT = Prefix()
