"""A generic multi-level page table for 64-bit platforms."""

from __future__ import annotations

import logging
import sys
from typing import Callable, Iterator, Optional

from .entry import GenericPTE, MappingFlags
from .paging import (
    AlreadyMappedError,
    MappedToHugePageError,
    NoMemoryError,
    NotAlignedError,
    NotMappedError,
    PAGE_SIZE_4K,
    PageSize,
    PagingError,
    PagingHandler,
    PagingMetaData,
    TlbFlush,
    TlbFlushAll,
)

logger = logging.getLogger(__name__)

ENTRY_COUNT = 512
_ENTRY_SIZE = 8
_U64_MASK = (1 << 64) - 1

WalkFunc = Callable[[int, int, int, GenericPTE], None]


def _p4_index(vaddr: int) -> int:
    return (vaddr >> (12 + 27)) & (ENTRY_COUNT - 1)


def _p3_index(vaddr: int) -> int:
    return (vaddr >> (12 + 18)) & (ENTRY_COUNT - 1)


def _p2_index(vaddr: int) -> int:
    return (vaddr >> (12 + 9)) & (ENTRY_COUNT - 1)


def _p1_index(vaddr: int) -> int:
    return (vaddr >> 12) & (ENTRY_COUNT - 1)


class PageTable64:
    """A 3- or 4-level page table whose tables live in handler-provided frames.

    Intermediate tables are allocated on demand and released, together with
    the root table, by :meth:`close`.
    """

    def __init__(
        self,
        metadata: PagingMetaData,
        pte_type: type[GenericPTE],
        handler: PagingHandler,
    ) -> None:
        if metadata.LEVELS not in (3, 4):
            raise ValueError(f"unsupported number of levels: {metadata.LEVELS}")
        self.metadata = metadata
        self.pte_type = pte_type
        self.handler = handler
        self._root = self._alloc_table()
        self._closed = False

    def root_paddr(self) -> int:
        """Return the physical address of the root table."""
        return self._root

    # Single-page operations.

    def map(self, vaddr: int, target: int, page_size: PageSize, flags: MappingFlags) -> TlbFlush:
        """Map the page at ``vaddr`` to the frame at ``target``.

        Both addresses are aligned down to ``page_size``.
        """
        table, idx = self._get_entry_or_create(vaddr, page_size)
        if not self._read(table, idx).is_unused():
            raise AlreadyMappedError(f"{vaddr:#x} is already mapped")
        aligned = target - page_size.align_offset(target)
        self._write(table, idx, self.pte_type.new_page(aligned, flags, page_size.is_huge()))
        return TlbFlush(self.metadata, vaddr)

    def remap(self, vaddr: int, paddr: int, flags: MappingFlags) -> tuple[PageSize, TlbFlush]:
        """Replace the target address and flags of the mapping at ``vaddr``."""
        table, idx, size = self._get_entry(vaddr)
        entry = self._read(table, idx)
        entry.set_paddr(paddr)
        entry.set_flags(flags, size.is_huge())
        self._write(table, idx, entry)
        return size, TlbFlush(self.metadata, vaddr)

    def protect(self, vaddr: int, flags: MappingFlags) -> tuple[PageSize, TlbFlush]:
        """Replace the flags of the mapping at ``vaddr``."""
        table, idx, size = self._get_entry(vaddr)
        entry = self._read(table, idx)
        if not entry.is_present():
            raise NotMappedError(f"{vaddr:#x} is not mapped")
        entry.set_flags(flags, size.is_huge())
        self._write(table, idx, entry)
        return size, TlbFlush(self.metadata, vaddr)

    def unmap(self, vaddr: int) -> tuple[int, PageSize, TlbFlush]:
        """Remove the mapping at ``vaddr``, returning its frame and size."""
        table, idx, size = self._get_entry(vaddr)
        entry = self._read(table, idx)
        if not entry.is_present():
            entry.clear()
            self._write(table, idx, entry)
            raise NotMappedError(f"{vaddr:#x} is not mapped")
        paddr = entry.paddr()
        entry.clear()
        self._write(table, idx, entry)
        return paddr, size, TlbFlush(self.metadata, vaddr)

    def query(self, vaddr: int) -> tuple[int, MappingFlags, PageSize]:
        """Translate ``vaddr``, returning the physical address, flags and page size."""
        table, idx, size = self._get_entry(vaddr)
        entry = self._read(table, idx)
        if entry.is_unused():
            raise NotMappedError(f"{vaddr:#x} is not mapped")
        offset = size.align_offset(vaddr & _U64_MASK)
        return entry.paddr() + offset, entry.flags(), size

    # Region operations.

    def map_region(
        self,
        vaddr: int,
        get_paddr: Callable[[int], int],
        size: int,
        flags: MappingFlags,
        allow_huge: bool,
        flush_tlb_by_page: bool,
    ) -> TlbFlushAll:
        """Map ``size`` bytes starting at ``vaddr``, using huge pages when allowed."""
        if not PageSize.SIZE_4K.is_aligned(vaddr) or not PageSize.SIZE_4K.is_aligned(size):
            raise NotAlignedError(f"region {vaddr:#x}+{size:#x} is not 4K aligned")
        logger.debug(
            "map_region(%#x): [%#x, %#x) %r", self._root, vaddr, vaddr + size, flags
        )
        while size > 0:
            paddr = get_paddr(vaddr)
            page_size = self._choose_page_size(vaddr, paddr, size) if allow_huge else PageSize.SIZE_4K
            try:
                tlb = self.map(vaddr, paddr, page_size, flags)
            except PagingError as exc:
                logger.error(
                    "failed to map page: %#x(%s) -> %#x, %r", vaddr, page_size.name, paddr, exc
                )
                raise
            if flush_tlb_by_page:
                self.metadata.flush_tlb(vaddr)
                tlb.flush()
            else:
                tlb.ignore()
            vaddr += int(page_size)
            size -= int(page_size)
        return TlbFlushAll(self.metadata)

    def unmap_region(self, vaddr: int, size: int, flush_tlb_by_page: bool) -> TlbFlushAll:
        """Unmap ``size`` bytes starting at ``vaddr``, following huge pages."""
        logger.debug("unmap_region(%#x) [%#x, %#x)", self._root, vaddr, vaddr + size)
        while size > 0:
            try:
                _, page_size, tlb = self.unmap(vaddr)
            except PagingError as exc:
                logger.error("failed to unmap page: %#x, %r", vaddr, exc)
                raise
            self._finish_step(tlb, flush_tlb_by_page)
            self._check_step(page_size, vaddr, size)
            vaddr += int(page_size)
            size -= int(page_size)
        return TlbFlushAll(self.metadata)

    def protect_region(
        self, vaddr: int, size: int, flags: MappingFlags, flush_tlb_by_page: bool
    ) -> TlbFlushAll:
        """Change the flags of ``size`` bytes starting at ``vaddr``."""
        logger.debug(
            "protect_region(%#x) [%#x, %#x) %r", self._root, vaddr, vaddr + size, flags
        )
        while size > 0:
            try:
                page_size, tlb = self.protect(vaddr, flags)
            except PagingError as exc:
                logger.error("failed to protect page: %#x, %r", vaddr, exc)
                raise
            self._finish_step(tlb, flush_tlb_by_page)
            self._check_step(page_size, vaddr, size)
            vaddr += int(page_size)
            size -= int(page_size)
        return TlbFlushAll(self.metadata)

    # Traversal and sharing.

    def walk(
        self,
        limit: int,
        pre_func: Optional[WalkFunc] = None,
        post_func: Optional[WalkFunc] = None,
    ) -> None:
        """Visit present entries recursively, at most ``limit`` per table.

        The callbacks receive the level (from 0), the index within the
        table, the virtual address the entry covers and the entry itself;
        ``pre_func`` runs before descending and ``post_func`` after.
        """
        self._walk(self._root, 0, 0, limit, pre_func, post_func)

    def copy_from(self, other: PageTable64, start: int, size: int) -> None:
        """Copy the top-level entries covering a range from another table."""
        if size == 0:
            return
        start_idx, end_idx = self._top_level_idx_range(start, size)
        src = other.handler.frame(other.root_paddr())
        dst = self.handler.frame(self._root)
        lo, hi = start_idx * _ENTRY_SIZE, end_idx * _ENTRY_SIZE
        dst[lo:hi] = src[lo:hi]

    def clear_copy_range(self, start: int, size: int) -> None:
        """Clear the top-level entries covering a range, undoing :meth:`copy_from`."""
        if size == 0:
            return
        start_idx, end_idx = self._top_level_idx_range(start, size)
        frame = self.handler.frame(self._root)
        frame[start_idx * _ENTRY_SIZE : end_idx * _ENTRY_SIZE] = bytes(
            (end_idx - start_idx) * _ENTRY_SIZE
        )

    # Lifetime.

    def close(self) -> None:
        """Free every intermediate table and the root table."""
        if self._closed:
            return
        last_level = self.metadata.LEVELS - 1

        def release(level: int, _index: int, _vaddr: int, entry: GenericPTE) -> None:
            if level < last_level and entry.is_present() and not entry.is_huge():
                self.handler.dealloc_frame(entry.paddr())

        try:
            self.walk(sys.maxsize, None, release)
        except PagingError:
            pass
        self.handler.dealloc_frame(self._root)
        self._closed = True

    def __enter__(self) -> PageTable64:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    # Internals.

    @staticmethod
    def _choose_page_size(vaddr: int, paddr: int, size: int) -> PageSize:
        for candidate in (PageSize.SIZE_1G, PageSize.SIZE_2M):
            if candidate.is_aligned(vaddr) and candidate.is_aligned(paddr) and size >= candidate:
                return candidate
        return PageSize.SIZE_4K

    @staticmethod
    def _finish_step(tlb: TlbFlush, flush: bool) -> None:
        if flush:
            tlb.flush()
        else:
            tlb.ignore()

    @staticmethod
    def _check_step(page_size: PageSize, vaddr: int, size: int) -> None:
        if not page_size.is_aligned(vaddr):
            raise AssertionError(f"{vaddr:#x} is not aligned to {page_size.name}")
        if int(page_size) > size:
            raise AssertionError(f"{page_size.name} page exceeds the remaining region")

    def _alloc_table(self) -> int:
        paddr = self.handler.alloc_frame()
        if paddr is None:
            raise NoMemoryError("cannot allocate a page table frame")
        frame = self.handler.frame(paddr)
        frame[:PAGE_SIZE_4K] = bytes(PAGE_SIZE_4K)
        return paddr

    def _read(self, table: int, idx: int) -> GenericPTE:
        frame = self.handler.frame(table)
        offset = idx * _ENTRY_SIZE
        return self.pte_type(int.from_bytes(frame[offset : offset + _ENTRY_SIZE], "little"))

    def _write(self, table: int, idx: int, entry: GenericPTE) -> None:
        frame = self.handler.frame(table)
        offset = idx * _ENTRY_SIZE
        frame[offset : offset + _ENTRY_SIZE] = entry.bits.to_bytes(_ENTRY_SIZE, "little")

    def _entries(self, table: int) -> Iterator[GenericPTE]:
        for idx in range(ENTRY_COUNT):
            yield self._read(table, idx)

    @staticmethod
    def _next_table(entry: GenericPTE) -> int:
        if entry.paddr() == 0:
            raise NotMappedError("next-level table is not present")
        if entry.is_huge():
            raise MappedToHugePageError("entry maps a huge page")
        return entry.paddr()

    def _next_table_or_create(self, table: int, idx: int) -> int:
        entry = self._read(table, idx)
        if entry.is_unused():
            paddr = self._alloc_table()
            self._write(table, idx, self.pte_type.new_table(paddr))
            return paddr
        return self._next_table(entry)

    def _get_entry(self, vaddr: int) -> tuple[int, int, PageSize]:
        vaddr &= _U64_MASK
        if self.metadata.LEVELS == 3:
            p3 = self._root
        else:
            p3 = self._next_table(self._read(self._root, _p4_index(vaddr)))
        i3 = _p3_index(vaddr)
        p3e = self._read(p3, i3)
        if p3e.is_huge():
            return p3, i3, PageSize.SIZE_1G

        p2 = self._next_table(p3e)
        i2 = _p2_index(vaddr)
        p2e = self._read(p2, i2)
        if p2e.is_huge():
            return p2, i2, PageSize.SIZE_2M

        p1 = self._next_table(p2e)
        return p1, _p1_index(vaddr), PageSize.SIZE_4K

    def _get_entry_or_create(self, vaddr: int, page_size: PageSize) -> tuple[int, int]:
        vaddr &= _U64_MASK
        if self.metadata.LEVELS == 3:
            p3 = self._root
        else:
            p3 = self._next_table_or_create(self._root, _p4_index(vaddr))
        i3 = _p3_index(vaddr)
        if page_size is PageSize.SIZE_1G:
            return p3, i3

        p2 = self._next_table_or_create(p3, i3)
        i2 = _p2_index(vaddr)
        if page_size is PageSize.SIZE_2M:
            return p2, i2

        p1 = self._next_table_or_create(p2, i2)
        return p1, _p1_index(vaddr)

    def _top_level_idx_range(self, start: int, size: int) -> tuple[int, int]:
        index_fn = _p3_index if self.metadata.LEVELS == 3 else _p4_index
        start_idx = index_fn(start & _U64_MASK)
        end_idx = index_fn((start + size - 1) & _U64_MASK) + 1
        if start_idx >= ENTRY_COUNT or end_idx > ENTRY_COUNT:
            raise AssertionError("top-level index out of range")
        return start_idx, end_idx

    def _walk(
        self,
        table: int,
        level: int,
        start_vaddr: int,
        limit: int,
        pre_func: Optional[WalkFunc],
        post_func: Optional[WalkFunc],
    ) -> None:
        levels = self.metadata.LEVELS
        shift = 12 + (levels - 1 - level) * 9
        visited = 0
        for idx, entry in enumerate(self._entries(table)):
            if not entry.is_present():
                continue
            vaddr = start_vaddr + (idx << shift)
            if pre_func is not None:
                pre_func(level, idx, vaddr, entry)
            if level < levels - 1 and not entry.is_huge():
                child = self._next_table(entry)
                self._walk(child, level + 1, vaddr, limit, pre_func, post_func)
            if post_func is not None:
                post_func(level, idx, vaddr, entry)
            visited += 1
            if visited >= limit:
                break