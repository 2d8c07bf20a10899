"""Page table metadata and constructors for the supported architectures."""

from __future__ import annotations

from typing import Callable, Optional

from .paging import PagingHandler, PagingMetaData
from .pte_aarch64 import A64PTE
from .pte_loongarch64 import LA64PTE
from .pte_riscv import Rv64PTE
from .pte_x86_64 import X64PTE
from .table import PageTable64

FlushCallback = Optional[Callable[[Optional[int]], None]]


class A64PagingMetaData(PagingMetaData):
    """Metadata of AArch64 VMSAv8-64 translation tables."""

    LEVELS = 4
    PA_MAX_BITS = 48
    VA_MAX_BITS = 48

    def vaddr_is_valid(self, vaddr: int) -> bool:
        """Return whether the bits above VA_MAX_BITS are all zero or all one."""
        top_bits = vaddr >> self.VA_MAX_BITS
        return top_bits in (0, 0xFFFF)


class LA64MetaData(PagingMetaData):
    """Metadata of LoongArch64 page tables (dir3, dir2, dir1 and pt; dir4 unused)."""

    LEVELS = 4
    PA_MAX_BITS = 48
    VA_MAX_BITS = 48

    # Page Walk Controller for the lower half address space:
    # PTBase=12, PTWidth=9, Dir1Base=21, Dir1Width=9, Dir2Base=30, Dir2Width=9, PTEWidth=0.
    PWCL_VALUE = 12 | (9 << 5) | (21 << 10) | (9 << 15) | (30 << 20) | (9 << 25)

    # Page Walk Controller for the higher half address space:
    # Dir3Base=39, Dir3Width=9, Dir4Base=0, Dir4Width=0, HPTW_En=0.
    PWCH_VALUE = 39 | (9 << 6)


class Sv39MetaData(PagingMetaData):
    """Metadata of RISC-V Sv39 page tables."""

    LEVELS = 3
    PA_MAX_BITS = 56
    VA_MAX_BITS = 39


class Sv48MetaData(PagingMetaData):
    """Metadata of RISC-V Sv48 page tables."""

    LEVELS = 4
    PA_MAX_BITS = 56
    VA_MAX_BITS = 48


class X64PagingMetaData(PagingMetaData):
    """Metadata of x86_64 page tables."""

    LEVELS = 4
    PA_MAX_BITS = 52
    VA_MAX_BITS = 48


def a64_page_table(handler: PagingHandler, on_flush: FlushCallback = None) -> PageTable64:
    """Create an AArch64 VMSAv8-64 translation table."""
    return PageTable64(A64PagingMetaData(on_flush), A64PTE, handler)


def la64_page_table(handler: PagingHandler, on_flush: FlushCallback = None) -> PageTable64:
    """Create a LoongArch64 page table."""
    return PageTable64(LA64MetaData(on_flush), LA64PTE, handler)


def sv39_page_table(handler: PagingHandler, on_flush: FlushCallback = None) -> PageTable64:
    """Create a RISC-V Sv39 (3-level, 39-bit) page table."""
    return PageTable64(Sv39MetaData(on_flush), Rv64PTE, handler)


def sv48_page_table(handler: PagingHandler, on_flush: FlushCallback = None) -> PageTable64:
    """Create a RISC-V Sv48 (4-level, 48-bit) page table."""
    return PageTable64(Sv48MetaData(on_flush), Rv64PTE, handler)


def x64_page_table(handler: PagingHandler, on_flush: FlushCallback = None) -> PageTable64:
    """Create an x86_64 page table."""
    return PageTable64(X64PagingMetaData(on_flush), X64PTE, handler)