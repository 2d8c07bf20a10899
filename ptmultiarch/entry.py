"""Generic page table entry flags and the entry interface shared by all architectures."""

from __future__ import annotations

import enum
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import ClassVar

_U64_MASK = (1 << 64) - 1


class MappingFlags(enum.IntFlag):
    """Permissions and attributes of a mapped memory region."""

    READ = 1 << 0
    WRITE = 1 << 1
    EXECUTE = 1 << 2
    USER = 1 << 3
    DEVICE = 1 << 4
    UNCACHED = 1 << 5
    COW = 1 << 6

    def mark_cow(self) -> MappingFlags:
        """Return these flags with WRITE replaced by COW, if WRITE is set."""
        if MappingFlags.WRITE in self:
            return (self ^ MappingFlags.WRITE) | MappingFlags.COW
        return self


@dataclass(repr=False)
class GenericPTE(ABC):
    """A 64-bit page table entry holding raw hardware bits.

    Subclasses define ``PHYS_ADDR_MASK`` and the architecture-specific
    encoding of flags.
    """

    bits: int = 0

    PHYS_ADDR_MASK: ClassVar[int] = 0

    def __post_init__(self) -> None:
        self.bits &= _U64_MASK

    @classmethod
    def empty(cls) -> GenericPTE:
        """Create an entry with all bits set to zero."""
        return cls(0)

    @classmethod
    @abstractmethod
    def new_page(cls, paddr: int, flags: MappingFlags, is_huge: bool) -> GenericPTE:
        """Create an entry pointing to a terminal page or block."""

    @classmethod
    @abstractmethod
    def new_table(cls, paddr: int) -> GenericPTE:
        """Create an entry pointing to a next-level page table."""

    def paddr(self) -> int:
        """Return the physical address mapped by this entry."""
        return self.bits & self.PHYS_ADDR_MASK

    @abstractmethod
    def flags(self) -> MappingFlags:
        """Return the generic flags of this entry."""

    def set_paddr(self, paddr: int) -> None:
        """Replace the physical address, keeping the other bits."""
        mask = self.PHYS_ADDR_MASK
        self.bits = (self.bits & ~mask & _U64_MASK) | (paddr & mask)

    @abstractmethod
    def set_flags(self, flags: MappingFlags, is_huge: bool) -> None:
        """Replace the flags, keeping the physical address."""

    def set_flags_arch(self, flags: int) -> None:
        """Replace the flags with raw architecture-specific flag bits."""
        self.bits = (self.bits & self.PHYS_ADDR_MASK) | (int(flags) & ~self.PHYS_ADDR_MASK & _U64_MASK)

    def is_unused(self) -> bool:
        """Return whether every bit of the entry is zero."""
        return self.bits == 0

    @abstractmethod
    def is_present(self) -> bool:
        """Return whether the entry is marked present."""

    @abstractmethod
    def is_huge(self) -> bool:
        """Return whether a non-last-level entry maps a huge frame."""

    def clear(self) -> None:
        """Set the entry to zero."""
        self.bits = 0

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(raw={self.bits:#x}, "
            f"paddr={self.paddr():#x}, flags={self.flags()!r})"
        )