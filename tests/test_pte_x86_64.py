import itertools

import pytest

from ptmultiarch.entry import MappingFlags
from ptmultiarch.pte_x86_64 import PTF, X64PTE, mapping_from_ptf, ptf_from_mapping

_OPTIONAL = [MappingFlags.WRITE, MappingFlags.EXECUTE, MappingFlags.USER, MappingFlags.UNCACHED]


def _combos():
    for n in range(len(_OPTIONAL) + 1):
        for combo in itertools.combinations(_OPTIONAL, n):
            flags = MappingFlags.READ
            for f in combo:
                flags |= f
            yield flags


@pytest.mark.parametrize("flags", list(_combos()))
def test_flags_round_trip(flags):
    assert mapping_from_ptf(ptf_from_mapping(flags)) == flags


def test_empty_flags_convert_to_empty():
    assert ptf_from_mapping(MappingFlags(0)) == PTF(0)
    assert mapping_from_ptf(PTF(0)) == MappingFlags(0)


def test_not_present_means_no_flags():
    assert mapping_from_ptf(PTF.WRITABLE | PTF.USER_ACCESSIBLE) == MappingFlags(0)


def test_device_becomes_uncached():
    ptf = ptf_from_mapping(MappingFlags.READ | MappingFlags.DEVICE)
    assert PTF.NO_CACHE in ptf and PTF.WRITE_THROUGH in ptf
    assert MappingFlags.UNCACHED in mapping_from_ptf(ptf)


def test_non_executable_sets_no_execute():
    assert PTF.NO_EXECUTE in ptf_from_mapping(MappingFlags.READ)
    assert PTF.NO_EXECUTE not in ptf_from_mapping(MappingFlags.READ | MappingFlags.EXECUTE)


def test_new_page_huge():
    pte = X64PTE.new_page(0x4000_0000, MappingFlags.READ | MappingFlags.WRITE, True)
    assert pte.is_huge()
    assert pte.is_present()
    assert pte.paddr() == 0x4000_0000
    assert pte.flags() == MappingFlags.READ | MappingFlags.WRITE


def test_new_page_small_not_huge():
    pte = X64PTE.new_page(0x1000, MappingFlags.READ, False)
    assert not pte.is_huge()


def test_new_page_masks_paddr():
    pte = X64PTE.new_page((1 << 60) | 0x5000 | 0x123, MappingFlags.READ, False)
    assert pte.paddr() == 0x5000


def test_new_table_flags():
    pte = X64PTE.new_table(0x2000)
    assert pte.bits == 0x2000 | int(PTF.PRESENT | PTF.WRITABLE | PTF.USER_ACCESSIBLE)
    assert pte.flags() == MappingFlags.READ | MappingFlags.WRITE | MappingFlags.EXECUTE | MappingFlags.USER
    assert not pte.is_huge()


def test_set_flags_keeps_paddr():
    pte = X64PTE.new_page(0x9000, MappingFlags.READ | MappingFlags.WRITE, False)
    pte.set_flags(MappingFlags.READ | MappingFlags.EXECUTE, True)
    assert pte.paddr() == 0x9000
    assert pte.flags() == MappingFlags.READ | MappingFlags.EXECUTE
    assert pte.is_huge()


def test_set_paddr_keeps_flags():
    pte = X64PTE.new_page(0x9000, MappingFlags.READ | MappingFlags.USER, False)
    pte.set_paddr(0xA000)
    assert pte.paddr() == 0xA000
    assert pte.flags() == MappingFlags.READ | MappingFlags.USER


def test_clear():
    pte = X64PTE.new_table(0x2000)
    pte.clear()
    assert pte.is_unused()
    assert not pte.is_present()