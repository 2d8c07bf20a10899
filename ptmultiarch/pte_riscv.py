"""RISC-V Sv39/Sv48 page table entries."""

from __future__ import annotations

import enum

from .entry import GenericPTE, MappingFlags


class RiscvPTEFlags(enum.IntFlag):
    """RISC-V page table entry flag bits."""

    V = 1 << 0
    R = 1 << 1
    W = 1 << 2
    X = 1 << 3
    U = 1 << 4
    G = 1 << 5
    A = 1 << 6
    D = 1 << 7
    RSW1 = 1 << 8
    RSW2 = 1 << 8


_FLAGS_MASK = 0
for _member in RiscvPTEFlags.__members__.values():
    _FLAGS_MASK |= int(_member)


def _truncate(bits: int) -> RiscvPTEFlags:
    return RiscvPTEFlags(bits & _FLAGS_MASK)


def mapping_from_riscv_flags(flags: RiscvPTEFlags) -> MappingFlags:
    """Convert RISC-V entry flags to generic mapping flags."""
    ret = MappingFlags(0)
    if RiscvPTEFlags.V not in flags:
        return ret
    if RiscvPTEFlags.R in flags:
        ret |= MappingFlags.READ
    if RiscvPTEFlags.W in flags:
        ret |= MappingFlags.WRITE
    if RiscvPTEFlags.X in flags:
        ret |= MappingFlags.EXECUTE
    if RiscvPTEFlags.U in flags:
        ret |= MappingFlags.USER
    if RiscvPTEFlags.RSW1 in flags:
        ret |= MappingFlags.COW
    return ret


def riscv_flags_from_mapping(flags: MappingFlags) -> RiscvPTEFlags:
    """Convert generic mapping flags to RISC-V entry flags."""
    if not flags:
        return RiscvPTEFlags(0)
    ret = RiscvPTEFlags.V
    if MappingFlags.READ in flags:
        ret |= RiscvPTEFlags.R
    if MappingFlags.WRITE in flags:
        ret |= RiscvPTEFlags.W
    if MappingFlags.EXECUTE in flags:
        ret |= RiscvPTEFlags.X
    if MappingFlags.USER in flags:
        ret |= RiscvPTEFlags.U
    if MappingFlags.COW in flags:
        ret |= RiscvPTEFlags.RSW1
    return ret


def _leaf_flags(flags: MappingFlags) -> RiscvPTEFlags:
    ret = riscv_flags_from_mapping(flags) | RiscvPTEFlags.A | RiscvPTEFlags.D
    if not ret & (RiscvPTEFlags.R | RiscvPTEFlags.X):
        raise ValueError("a leaf entry must be readable or executable")
    return ret


class Rv64PTE(GenericPTE):
    """Sv39 and Sv48 page table entry for RV64 systems."""

    PHYS_ADDR_MASK = (1 << 54) - (1 << 10)  # bits 10..54

    @classmethod
    def new_page(cls, paddr: int, flags: MappingFlags, is_huge: bool) -> Rv64PTE:
        return cls(int(_leaf_flags(flags)) | ((paddr >> 2) & cls.PHYS_ADDR_MASK))

    @classmethod
    def new_table(cls, paddr: int) -> Rv64PTE:
        return cls(int(RiscvPTEFlags.V) | ((paddr >> 2) & cls.PHYS_ADDR_MASK))

    def paddr(self) -> int:
        return (self.bits & self.PHYS_ADDR_MASK) << 2

    def set_paddr(self, paddr: int) -> None:
        mask = self.PHYS_ADDR_MASK
        self.bits = (self.bits & ~mask & ((1 << 64) - 1)) | ((paddr >> 2) & mask)

    def flags(self) -> MappingFlags:
        return mapping_from_riscv_flags(_truncate(self.bits))

    def set_flags(self, flags: MappingFlags, is_huge: bool) -> None:
        self.set_flags_arch(_leaf_flags(flags))

    def is_present(self) -> bool:
        return RiscvPTEFlags.V in _truncate(self.bits)

    def is_huge(self) -> bool:
        return bool(_truncate(self.bits) & (RiscvPTEFlags.R | RiscvPTEFlags.X))