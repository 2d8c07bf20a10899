"""LoongArch64 multi-level page table entries."""

from __future__ import annotations

import enum

from .entry import GenericPTE, MappingFlags


class LoongArchPTEFlags(enum.IntFlag):
    """LoongArch64 page table entry flag bits."""

    V = 1 << 0
    D = 1 << 1
    PLVL = 1 << 2
    PLVH = 1 << 3
    MATL = 1 << 4
    MATH = 1 << 5
    GH = 1 << 6
    P = 1 << 7
    W = 1 << 8
    G = 1 << 12
    NR = 1 << 61
    NX = 1 << 62
    RPLV = 1 << 63


_FLAGS_MASK = 0
for _member in LoongArchPTEFlags.__members__.values():
    _FLAGS_MASK |= int(_member)


def _truncate(bits: int) -> LoongArchPTEFlags:
    return LoongArchPTEFlags(bits & _FLAGS_MASK)


def mapping_from_loongarch_flags(flags: LoongArchPTEFlags) -> MappingFlags:
    """Convert LoongArch64 entry flags to generic mapping flags."""
    if LoongArchPTEFlags.V not in flags:
        return MappingFlags(0)
    ret = MappingFlags(0)
    if LoongArchPTEFlags.NR not in flags:
        ret |= MappingFlags.READ
    if LoongArchPTEFlags.W in flags:
        ret |= MappingFlags.WRITE
    if LoongArchPTEFlags.NX not in flags:
        ret |= MappingFlags.EXECUTE
    if LoongArchPTEFlags.PLVL | LoongArchPTEFlags.PLVH in flags:
        ret |= MappingFlags.USER
    if LoongArchPTEFlags.MATL not in flags:
        if LoongArchPTEFlags.MATH in flags:
            ret |= MappingFlags.UNCACHED
        else:
            ret |= MappingFlags.DEVICE
    return ret


def loongarch_flags_from_mapping(flags: MappingFlags) -> LoongArchPTEFlags:
    """Convert generic mapping flags to LoongArch64 entry flags."""
    if not flags:
        return LoongArchPTEFlags(0)
    ret = LoongArchPTEFlags.V | LoongArchPTEFlags.P
    if MappingFlags.READ not in flags:
        ret |= LoongArchPTEFlags.NR
    if MappingFlags.WRITE in flags:
        ret |= LoongArchPTEFlags.W
    if MappingFlags.EXECUTE not in flags:
        ret |= LoongArchPTEFlags.NX
    if MappingFlags.USER in flags:
        ret |= LoongArchPTEFlags.PLVH | LoongArchPTEFlags.PLVL
    if MappingFlags.DEVICE not in flags:
        if MappingFlags.UNCACHED in flags:
            ret |= LoongArchPTEFlags.MATH  # weakly-ordered uncached
        else:
            ret |= LoongArchPTEFlags.MATL  # coherent cached
    return ret


def _leaf_flags(flags: MappingFlags, is_huge: bool) -> LoongArchPTEFlags:
    ret = loongarch_flags_from_mapping(flags) | LoongArchPTEFlags.D
    if is_huge:
        ret |= LoongArchPTEFlags.GH
    return ret


class LA64PTE(GenericPTE):
    """Page table entry for LoongArch64 systems."""

    PHYS_ADDR_MASK = 0x0000_FFFF_FFFF_F000  # bits 12..48

    @classmethod
    def new_page(cls, paddr: int, flags: MappingFlags, is_huge: bool) -> LA64PTE:
        return cls(int(_leaf_flags(flags, is_huge)) | (paddr & cls.PHYS_ADDR_MASK))

    @classmethod
    def new_table(cls, paddr: int) -> LA64PTE:
        return cls(paddr & cls.PHYS_ADDR_MASK)

    def flags(self) -> MappingFlags:
        return mapping_from_loongarch_flags(_truncate(self.bits))

    def set_flags(self, flags: MappingFlags, is_huge: bool) -> None:
        self.set_flags_arch(_leaf_flags(flags, is_huge))

    def is_present(self) -> bool:
        return LoongArchPTEFlags.P in _truncate(self.bits)

    def is_huge(self) -> bool:
        return LoongArchPTEFlags.GH in _truncate(self.bits)