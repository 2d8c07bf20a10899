import pytest

from ptmultiarch.entry import MappingFlags
from ptmultiarch.pte_aarch64 import (
    MAIR_VALUE,
    A64PTE,
    DescriptorAttr,
    MemAttr,
    descriptor_from_mapping,
    mapping_from_descriptor,
)

F = MappingFlags


@pytest.mark.parametrize(
    "attr, expected",
    [
        (MemAttr.DEVICE, 0x04),
        (MemAttr.NORMAL, 0xFF),
        (MemAttr.NORMAL_NON_CACHEABLE, 0x44),
    ],
)
def test_mair_value_matches_descriptor_index(attr, expected):
    index = DescriptorAttr.from_mem_attr(attr).mem_attr().value
    assert (MAIR_VALUE >> (8 * index)) & 0xFF == expected


@pytest.mark.parametrize("idx", list(MemAttr))
def test_from_mem_attr_round_trip(idx):
    assert DescriptorAttr.from_mem_attr(idx).mem_attr() is idx


def test_from_mem_attr_shareability():
    device = DescriptorAttr.from_mem_attr(MemAttr.DEVICE)
    normal = DescriptorAttr.from_mem_attr(MemAttr.NORMAL)
    assert not device & (DescriptorAttr.INNER | DescriptorAttr.SHAREABLE)
    assert DescriptorAttr.INNER in normal
    assert DescriptorAttr.SHAREABLE in normal


@pytest.mark.parametrize("idx", [3, 4, 7])
def test_reserved_mem_attr_index(idx):
    assert DescriptorAttr(idx << 2).mem_attr() is None


@pytest.mark.parametrize(
    "flags",
    [
        F.READ,
        F.READ | F.WRITE,
        F.READ | F.EXECUTE,
        F.READ | F.WRITE | F.EXECUTE,
        F.READ | F.USER,
        F.READ | F.USER | F.EXECUTE,
        F.READ | F.WRITE | F.USER | F.EXECUTE,
        F.READ | F.WRITE | F.DEVICE,
        F.READ | F.UNCACHED,
        F.READ | F.EXECUTE | F.USER | F.UNCACHED,
    ],
)
def test_flags_round_trip(flags):
    assert mapping_from_descriptor(descriptor_from_mapping(flags)) == flags


def test_empty_flags():
    assert descriptor_from_mapping(F(0)) == DescriptorAttr(0)
    assert mapping_from_descriptor(DescriptorAttr(0)) == F(0)


def test_not_readable_is_invalid():
    attr = descriptor_from_mapping(F.WRITE)
    assert DescriptorAttr.VALID not in attr
    assert mapping_from_descriptor(attr) == F(0)


def test_device_takes_precedence_over_uncached():
    attr = descriptor_from_mapping(F.READ | F.DEVICE | F.UNCACHED)
    assert attr.mem_attr() is MemAttr.DEVICE
    assert mapping_from_descriptor(attr) == F.READ | F.DEVICE


def test_kernel_mapping_never_user_executable():
    attr = descriptor_from_mapping(F.READ | F.EXECUTE)
    assert DescriptorAttr.UXN in attr
    assert DescriptorAttr.PXN not in attr


def test_user_mapping_never_privileged_executable():
    attr = descriptor_from_mapping(F.READ | F.USER | F.EXECUTE)
    assert DescriptorAttr.PXN in attr
    assert DescriptorAttr.UXN not in attr


def test_new_page_small():
    paddr = 0x1234_5000
    pte = A64PTE.new_page(paddr, F.READ | F.WRITE, False)
    assert pte.paddr() == paddr
    assert pte.flags() == F.READ | F.WRITE
    assert pte.is_present()
    assert not pte.is_huge()
    assert pte.bits & DescriptorAttr.AF


def test_new_page_huge():
    pte = A64PTE.new_page(0x4000_0000, F.READ, True)
    assert pte.is_huge()
    assert pte.paddr() == 0x4000_0000


def test_new_page_masks_address():
    pte = A64PTE.new_page(0x1234_5678, F.READ, False)
    assert pte.paddr() == 0x1234_5678 & A64PTE.PHYS_ADDR_MASK


def test_new_table():
    pte = A64PTE.new_table(0x8000_0000)
    assert pte.paddr() == 0x8000_0000
    assert pte.is_present()
    assert not pte.is_huge()
    assert pte.flags() == F.READ | F.WRITE | F.EXECUTE | F.DEVICE


def test_set_flags_keeps_address():
    pte = A64PTE.new_page(0x7000, F.READ | F.WRITE, False)
    pte.set_flags(F.READ | F.EXECUTE | F.USER, False)
    assert pte.paddr() == 0x7000
    assert pte.flags() == F.READ | F.EXECUTE | F.USER
    assert not pte.is_huge()


def test_set_paddr_keeps_flags():
    pte = A64PTE.new_page(0x7000, F.READ | F.WRITE, False)
    pte.set_paddr(0x9000)
    assert pte.paddr() == 0x9000
    assert pte.flags() == F.READ | F.WRITE


def test_clear_and_unused():
    pte = A64PTE.new_page(0x7000, F.READ, False)
    assert not pte.is_unused()
    pte.clear()
    assert pte.is_unused()
    assert not pte.is_present()


def test_repr_names_type_and_address():
    text = repr(A64PTE.new_page(0x7000, F.READ, False))
    assert text.startswith("A64PTE(")
    assert "paddr=0x7000" in text