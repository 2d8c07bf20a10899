"""x86 page table entries for 64-bit paging."""

from __future__ import annotations

import enum

from .entry import GenericPTE, MappingFlags


class PTF(enum.IntFlag):
    """x86_64 page table entry flag bits."""

    PRESENT = 1 << 0
    WRITABLE = 1 << 1
    USER_ACCESSIBLE = 1 << 2
    WRITE_THROUGH = 1 << 3
    NO_CACHE = 1 << 4
    ACCESSED = 1 << 5
    DIRTY = 1 << 6
    HUGE_PAGE = 1 << 7
    GLOBAL = 1 << 8
    BIT_9 = 1 << 9
    BIT_10 = 1 << 10
    BIT_11 = 1 << 11
    BIT_52 = 1 << 52
    BIT_53 = 1 << 53
    BIT_54 = 1 << 54
    BIT_55 = 1 << 55
    BIT_56 = 1 << 56
    BIT_57 = 1 << 57
    BIT_58 = 1 << 58
    BIT_59 = 1 << 59
    BIT_60 = 1 << 60
    BIT_61 = 1 << 61
    BIT_62 = 1 << 62
    NO_EXECUTE = 1 << 63


_PTF_MASK = 0
for _member in PTF.__members__.values():
    _PTF_MASK |= int(_member)


def _ptf_truncate(bits: int) -> PTF:
    return PTF(bits & _PTF_MASK)


def mapping_from_ptf(flags: PTF) -> MappingFlags:
    """Convert x86_64 entry flags to generic mapping flags."""
    if PTF.PRESENT not in flags:
        return MappingFlags(0)
    ret = MappingFlags.READ
    if PTF.WRITABLE in flags:
        ret |= MappingFlags.WRITE
    if PTF.NO_EXECUTE not in flags:
        ret |= MappingFlags.EXECUTE
    if PTF.USER_ACCESSIBLE in flags:
        ret |= MappingFlags.USER
    if PTF.NO_CACHE in flags:
        ret |= MappingFlags.UNCACHED
    return ret


def ptf_from_mapping(flags: MappingFlags) -> PTF:
    """Convert generic mapping flags to x86_64 entry flags."""
    if not flags:
        return PTF(0)
    ret = PTF.PRESENT
    if MappingFlags.WRITE in flags:
        ret |= PTF.WRITABLE
    if MappingFlags.EXECUTE not in flags:
        ret |= PTF.NO_EXECUTE
    if MappingFlags.USER in flags:
        ret |= PTF.USER_ACCESSIBLE
    if MappingFlags.DEVICE in flags or MappingFlags.UNCACHED in flags:
        ret |= PTF.NO_CACHE | PTF.WRITE_THROUGH
    return ret


class X64PTE(GenericPTE):
    """An x86_64 page table entry."""

    PHYS_ADDR_MASK = 0x000F_FFFF_FFFF_F000  # bits 12..52

    @classmethod
    def new_page(cls, paddr: int, flags: MappingFlags, is_huge: bool) -> X64PTE:
        ptf = ptf_from_mapping(flags)
        if is_huge:
            ptf |= PTF.HUGE_PAGE
        return cls(int(ptf) | (paddr & cls.PHYS_ADDR_MASK))

    @classmethod
    def new_table(cls, paddr: int) -> X64PTE:
        ptf = PTF.PRESENT | PTF.WRITABLE | PTF.USER_ACCESSIBLE
        return cls(int(ptf) | (paddr & cls.PHYS_ADDR_MASK))

    def flags(self) -> MappingFlags:
        return mapping_from_ptf(_ptf_truncate(self.bits))

    def set_flags(self, flags: MappingFlags, is_huge: bool) -> None:
        ptf = ptf_from_mapping(flags)
        if is_huge:
            ptf |= PTF.HUGE_PAGE
        self.set_flags_arch(ptf)

    def is_present(self) -> bool:
        return PTF.PRESENT in _ptf_truncate(self.bits)

    def is_huge(self) -> bool:
        return PTF.HUGE_PAGE in _ptf_truncate(self.bits)