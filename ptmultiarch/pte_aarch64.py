"""AArch64 VMSAv8-64 translation table format descriptors."""

from __future__ import annotations

import enum

from .entry import GenericPTE, MappingFlags

_ATTR_INDEX_MASK = 0b111_00

# Value for MAIR_ELx matching the memory attribute indexes used in descriptors:
# Attr0 = Device-nGnRE, Attr1 = Normal write-back, Attr2 = Normal non-cacheable.
MAIR_VALUE = 0x44_FF_04


class MemAttr(enum.IntEnum):
    """Memory attribute index into the MAIR register."""

    DEVICE = 0
    NORMAL = 1
    NORMAL_NON_CACHEABLE = 2


class DescriptorAttr(enum.IntFlag):
    """Attribute fields of VMSAv8-64 translation table descriptors."""

    VALID = 1 << 0
    NON_BLOCK = 1 << 1
    ATTR_INDX = 0b111 << 2
    NS = 1 << 5
    AP_EL0 = 1 << 6
    AP_RO = 1 << 7
    INNER = 1 << 8
    SHAREABLE = 1 << 9
    AF = 1 << 10
    NG = 1 << 11
    CONTIGUOUS = 1 << 52
    PXN = 1 << 53
    UXN = 1 << 54
    PXN_TABLE = 1 << 59
    XN_TABLE = 1 << 60
    AP_NO_EL0_TABLE = 1 << 61
    AP_NO_WRITE_TABLE = 1 << 62
    NS_TABLE = 1 << 63

    @classmethod
    def from_mem_attr(cls, idx: MemAttr) -> DescriptorAttr:
        """Build a descriptor holding only the memory attribute fields."""
        bits = int(idx) << 2
        if idx in (MemAttr.NORMAL, MemAttr.NORMAL_NON_CACHEABLE):
            bits |= int(cls.INNER) | int(cls.SHAREABLE)
        return cls(bits)

    def mem_attr(self) -> MemAttr | None:
        """Return the memory attribute index, or None if it is reserved."""
        idx = (int(self) & _ATTR_INDEX_MASK) >> 2
        try:
            return MemAttr(idx)
        except ValueError:
            return None


_ATTR_MASK = 0
for _member in DescriptorAttr.__members__.values():
    _ATTR_MASK |= int(_member)


def _truncate(bits: int) -> DescriptorAttr:
    return DescriptorAttr(bits & _ATTR_MASK)


def mapping_from_descriptor(attr: DescriptorAttr) -> MappingFlags:
    """Convert descriptor attributes to generic mapping flags."""
    if DescriptorAttr.VALID not in attr:
        return MappingFlags(0)
    flags = MappingFlags.READ
    if DescriptorAttr.AP_RO not in attr:
        flags |= MappingFlags.WRITE
    if DescriptorAttr.AP_EL0 in attr:
        flags |= MappingFlags.USER
        if DescriptorAttr.UXN not in attr:
            flags |= MappingFlags.EXECUTE
    elif not attr & DescriptorAttr.PXN:
        flags |= MappingFlags.EXECUTE
    mem = attr.mem_attr()
    if mem is MemAttr.DEVICE:
        flags |= MappingFlags.DEVICE
    elif mem is MemAttr.NORMAL_NON_CACHEABLE:
        flags |= MappingFlags.UNCACHED
    return flags


def descriptor_from_mapping(flags: MappingFlags) -> DescriptorAttr:
    """Convert generic mapping flags to descriptor attributes."""
    if not flags:
        return DescriptorAttr(0)
    if MappingFlags.DEVICE in flags:
        attr = DescriptorAttr.from_mem_attr(MemAttr.DEVICE)
    elif MappingFlags.UNCACHED in flags:
        attr = DescriptorAttr.from_mem_attr(MemAttr.NORMAL_NON_CACHEABLE)
    else:
        attr = DescriptorAttr.from_mem_attr(MemAttr.NORMAL)
    if MappingFlags.READ in flags:
        attr |= DescriptorAttr.VALID
    if MappingFlags.WRITE not in flags:
        attr |= DescriptorAttr.AP_RO
    if MappingFlags.USER in flags:
        attr |= DescriptorAttr.AP_EL0 | DescriptorAttr.PXN
        if MappingFlags.EXECUTE not in flags:
            attr |= DescriptorAttr.UXN
    else:
        attr |= DescriptorAttr.UXN
        if MappingFlags.EXECUTE not in flags:
            attr |= DescriptorAttr.PXN
    return attr


def _leaf_attr(flags: MappingFlags, is_huge: bool) -> DescriptorAttr:
    attr = descriptor_from_mapping(flags) | DescriptorAttr.AF
    if not is_huge:
        attr |= DescriptorAttr.NON_BLOCK
    return attr


class A64PTE(GenericPTE):
    """A VMSAv8-64 translation table descriptor.

    AttrIndx is 0 for device memory, 1 for normal memory and 2 for normal
    non-cacheable memory; MAIR_ELx must be configured with ``MAIR_VALUE``.
    """

    PHYS_ADDR_MASK = 0x0000_FFFF_FFFF_F000  # bits 12..48

    @classmethod
    def new_page(cls, paddr: int, flags: MappingFlags, is_huge: bool) -> A64PTE:
        return cls(int(_leaf_attr(flags, is_huge)) | (paddr & cls.PHYS_ADDR_MASK))

    @classmethod
    def new_table(cls, paddr: int) -> A64PTE:
        attr = DescriptorAttr.NON_BLOCK | DescriptorAttr.VALID
        return cls(int(attr) | (paddr & cls.PHYS_ADDR_MASK))

    def flags(self) -> MappingFlags:
        return mapping_from_descriptor(_truncate(self.bits))

    def set_flags(self, flags: MappingFlags, is_huge: bool) -> None:
        self.set_flags_arch(_leaf_attr(flags, is_huge))

    def is_present(self) -> bool:
        return DescriptorAttr.VALID in _truncate(self.bits)

    def is_huge(self) -> bool:
        return DescriptorAttr.NON_BLOCK not in _truncate(self.bits)

    def __repr__(self) -> str:
        return (
            f"A64PTE(raw={self.bits:#x}, paddr={self.paddr():#x}, "
            f"attr={_truncate(self.bits)!r}, flags={self.flags()!r})"
        )