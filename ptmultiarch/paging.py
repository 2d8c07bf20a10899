"""Paging errors, page sizes, architecture metadata, frame handlers and TLB tokens."""

from __future__ import annotations

import enum
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, ClassVar, Optional

PAGE_SIZE_4K = 0x1000

_U64_MASK = (1 << 64) - 1


class PagingError(Exception):
    """Base class for page table operation failures."""


class NoMemoryError(PagingError):
    """A physical frame could not be allocated."""


class NotAlignedError(PagingError):
    """An address is not aligned to the page size."""


class NotMappedError(PagingError):
    """The mapping is not present."""


class AlreadyMappedError(PagingError):
    """The mapping is already present."""


class MappedToHugePageError(PagingError):
    """The entry maps a huge page where a next-level table was expected."""


class PageSize(enum.IntEnum):
    """Page sizes supported by the hardware page table."""

    SIZE_4K = 0x1000
    SIZE_2M = 0x20_0000
    SIZE_1G = 0x4000_0000

    def is_huge(self) -> bool:
        """Return whether the size is larger than 4K."""
        return self is not PageSize.SIZE_4K

    def is_aligned(self, addr_or_size: int) -> bool:
        """Return whether an address or size is a multiple of this page size."""
        return addr_or_size & (int(self) - 1) == 0

    def align_offset(self, addr: int) -> int:
        """Return the offset of an address within a page of this size."""
        return addr & (int(self) - 1)


class PagingMetaData:
    """Architecture-dependent parameters of a page table.

    Subclasses set ``LEVELS``, ``PA_MAX_BITS`` and ``VA_MAX_BITS``. TLB
    flushes are reported to ``on_flush`` with the virtual address, or
    ``None`` for a full flush.
    """

    LEVELS: ClassVar[int]
    PA_MAX_BITS: ClassVar[int]
    VA_MAX_BITS: ClassVar[int]

    def __init__(self, on_flush: Optional[Callable[[Optional[int]], None]] = None) -> None:
        for name in ("LEVELS", "PA_MAX_BITS", "VA_MAX_BITS"):
            if not hasattr(type(self), name):
                raise TypeError(f"{type(self).__name__} does not define {name}")
        self.on_flush = on_flush

    def pa_max_addr(self) -> int:
        """Return the highest valid physical address."""
        return (1 << self.PA_MAX_BITS) - 1

    def paddr_is_valid(self, paddr: int) -> bool:
        """Return whether a physical address is within range."""
        return paddr <= self.pa_max_addr()

    def vaddr_is_valid(self, vaddr: int) -> bool:
        """Return whether the top bits of a virtual address are sign-extended."""
        top_mask = (_U64_MASK << (self.VA_MAX_BITS - 1)) & _U64_MASK
        top = vaddr & top_mask
        return top == 0 or top == top_mask

    def flush_tlb(self, vaddr: Optional[int]) -> None:
        """Flush the TLB entry for ``vaddr``, or the whole TLB if it is None."""
        if self.on_flush is not None:
            self.on_flush(vaddr)


class PagingHandler(ABC):
    """OS-dependent services for page table frames."""

    @abstractmethod
    def alloc_frame(self) -> Optional[int]:
        """Allocate a 4K physical frame, returning its address or None."""

    @abstractmethod
    def dealloc_frame(self, paddr: int) -> None:
        """Free an allocated physical frame."""

    @abstractmethod
    def frame(self, paddr: int) -> bytearray:
        """Return the writable 4K memory of the frame at ``paddr``."""


class SimulatedMemory(PagingHandler):
    """A pool of 4K frames backed by byte arrays."""

    def __init__(self, base: int = 0x8000_0000, frame_count: int = 1024) -> None:
        if base % PAGE_SIZE_4K:
            raise ValueError(f"base {base:#x} is not 4K aligned")
        if frame_count < 0:
            raise ValueError("frame_count must not be negative")
        self.base = base
        self.frame_count = frame_count
        self._free = [base + i * PAGE_SIZE_4K for i in range(frame_count)]
        self._free.reverse()
        self._frames: dict[int, bytearray] = {}

    def alloc_frame(self) -> Optional[int]:
        if not self._free:
            return None
        paddr = self._free.pop()
        self._frames[paddr] = bytearray(PAGE_SIZE_4K)
        return paddr

    def dealloc_frame(self, paddr: int) -> None:
        if paddr not in self._frames:
            raise ValueError(f"frame {paddr:#x} is not allocated")
        del self._frames[paddr]
        self._free.append(paddr)

    def frame(self, paddr: int) -> bytearray:
        start = paddr - paddr % PAGE_SIZE_4K
        try:
            return self._frames[start]
        except KeyError:
            raise ValueError(f"frame {start:#x} is not allocated") from None

    def allocated(self) -> list[int]:
        """Return the addresses of allocated frames in ascending order."""
        return sorted(self._frames)


@dataclass
class TlbFlush:
    """Marks that the mapping of one virtual address has changed.

    The token is settled once, by ``flush`` or ``ignore``; settling it again
    raises ``RuntimeError``.
    """

    metadata: PagingMetaData
    vaddr: int
    settled: bool = field(default=False, init=False, compare=False)

    def _settle(self) -> None:
        if self.settled:
            raise RuntimeError("TLB flush token already used")
        self.settled = True

    def ignore(self) -> None:
        """Settle the token without flushing; the caller flushes later."""
        self._settle()

    def flush(self) -> None:
        """Flush the TLB entry for the changed address."""
        self._settle()
        self.metadata.flush_tlb(self.vaddr)


@dataclass
class TlbFlushAll:
    """Marks that page table mappings have changed.

    The token is settled once, by ``flush_all`` or ``ignore``; settling it
    again raises ``RuntimeError``.
    """

    metadata: PagingMetaData
    settled: bool = field(default=False, init=False, compare=False)

    def _settle(self) -> None:
        if self.settled:
            raise RuntimeError("TLB flush token already used")
        self.settled = True

    def ignore(self) -> None:
        """Settle the token without flushing; the caller flushes later."""
        self._settle()

    def flush_all(self) -> None:
        """Flush the entire TLB."""
        self._settle()
        self.metadata.flush_tlb(None)