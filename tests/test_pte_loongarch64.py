import itertools

import pytest

from ptmultiarch.entry import MappingFlags
from ptmultiarch.pte_loongarch64 import (
    LA64PTE,
    LoongArchPTEFlags,
    loongarch_flags_from_mapping,
    mapping_from_loongarch_flags,
)

_PERMS = [MappingFlags.READ, MappingFlags.WRITE, MappingFlags.EXECUTE, MappingFlags.USER]
_MEMORY = [MappingFlags(0), MappingFlags.DEVICE, MappingFlags.UNCACHED]


def _combos():
    for n in range(len(_PERMS) + 1):
        for combo in itertools.combinations(_PERMS, n):
            for mem in _MEMORY:
                flags = mem
                for f in combo:
                    flags |= f
                if flags:
                    yield flags


@pytest.mark.parametrize("flags", list(_combos()))
def test_flags_round_trip(flags):
    assert mapping_from_loongarch_flags(loongarch_flags_from_mapping(flags)) == flags


def test_empty_flags():
    assert loongarch_flags_from_mapping(MappingFlags(0)) == LoongArchPTEFlags(0)
    assert mapping_from_loongarch_flags(LoongArchPTEFlags.P | LoongArchPTEFlags.W) == MappingFlags(0)


def test_device_wins_over_uncached():
    flags = MappingFlags.READ | MappingFlags.DEVICE | MappingFlags.UNCACHED
    assert mapping_from_loongarch_flags(loongarch_flags_from_mapping(flags)) == (
        MappingFlags.READ | MappingFlags.DEVICE
    )


def test_user_needs_both_privilege_bits():
    only_low = LoongArchPTEFlags.V | LoongArchPTEFlags.MATL | LoongArchPTEFlags.PLVL
    assert MappingFlags.USER not in mapping_from_loongarch_flags(only_low)
    both = only_low | LoongArchPTEFlags.PLVH
    assert MappingFlags.USER in mapping_from_loongarch_flags(both)


def test_new_table_has_no_flags():
    pte = LA64PTE.new_table(0x5000)
    assert pte.bits == 0x5000
    assert pte.paddr() == 0x5000
    assert not pte.is_present()
    assert not pte.is_huge()
    assert pte.flags() == MappingFlags(0)


def test_new_page_sets_dirty_and_present():
    pte = LA64PTE.new_page(0x6000, MappingFlags.READ | MappingFlags.WRITE, False)
    assert LoongArchPTEFlags.D in LoongArchPTEFlags(pte.bits & 0xFFF)
    assert pte.is_present()
    assert not pte.is_huge()
    assert pte.paddr() == 0x6000
    assert pte.flags() == MappingFlags.READ | MappingFlags.WRITE


def test_new_page_huge():
    pte = LA64PTE.new_page(0x20_0000, MappingFlags.READ, True)
    assert pte.is_huge()
    assert pte.paddr() == 0x20_0000


def test_set_flags_keeps_paddr():
    pte = LA64PTE.new_page(0x7000, MappingFlags.READ, False)
    pte.set_flags(MappingFlags.READ | MappingFlags.EXECUTE | MappingFlags.USER, True)
    assert pte.paddr() == 0x7000
    assert pte.flags() == MappingFlags.READ | MappingFlags.EXECUTE | MappingFlags.USER
    assert pte.is_huge()


def test_paddr_masked_to_48_bits():
    pte = LA64PTE.new_page((1 << 50) | 0x8000, MappingFlags.READ, False)
    assert pte.paddr() == 0x8000


def test_clear():
    pte = LA64PTE.new_page(0x7000, MappingFlags.READ, False)
    pte.clear()
    assert pte.is_unused()
    assert not pte.is_present()