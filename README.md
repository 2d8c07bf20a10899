# ptmultiarch

Generic three- and four-level page tables, with page table entry formats for
x86_64, RISC-V (Sv39/Sv48), AArch64 (VMSAv8-64) and LoongArch64.

The tables are stored as raw 64-bit little-endian entries in 4K frames handed
out by a frame handler. With the bundled `SimulatedMemory` handler this makes
the package useful for exploring and testing how virtual-to-physical mappings
are built, queried, protected and torn down, and how architecture-neutral
permissions (`MappingFlags`) become each architecture's entry bits.

## Installing

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Modules

- `ptmultiarch.entry`: `MappingFlags` and the abstract `GenericPTE`.
- `ptmultiarch.pte_x86_64`: `PTF`, `X64PTE`, `ptf_from_mapping`, `mapping_from_ptf`.
- `ptmultiarch.pte_riscv`: `RiscvPTEFlags`, `Rv64PTE`, `riscv_flags_from_mapping`, `mapping_from_riscv_flags`.
- `ptmultiarch.pte_aarch64`: `DescriptorAttr`, `MemAttr`, `A64PTE`, `MAIR_VALUE`, `descriptor_from_mapping`, `mapping_from_descriptor`.
- `ptmultiarch.pte_loongarch64`: `LoongArchPTEFlags`, `LA64PTE`, `loongarch_flags_from_mapping`, `mapping_from_loongarch_flags`.
- `ptmultiarch.paging`: `PageSize`, `PagingMetaData`, `PagingHandler`, `SimulatedMemory`, `TlbFlush`, `TlbFlushAll` and the `PagingError` exceptions.
- `ptmultiarch.table`: `PageTable64`.
- `ptmultiarch.arch`: per-architecture metadata classes and the constructors `x64_page_table`, `sv39_page_table`, `sv48_page_table`, `a64_page_table` and `la64_page_table`.

## Page table entries

Every entry type derives from `GenericPTE`, holds its raw value in `bits`, and
offers `new_page`, `new_table`, `empty`, `paddr`, `set_paddr`, `flags`,
`set_flags`, `set_flags_arch`, `is_unused`, `is_present`, `is_huge` and `clear`.

```python
from ptmultiarch.entry import MappingFlags
from ptmultiarch.pte_x86_64 import X64PTE

flags = MappingFlags.READ | MappingFlags.WRITE
pte = X64PTE.new_page(0x1234_5000, flags, False)
pte.paddr()        # 0x12345000
pte.flags()        # READ | WRITE
pte.is_present()   # True
pte.is_huge()      # False
```

`MappingFlags.mark_cow()` returns the flags with `WRITE` replaced by `COW`
when `WRITE` is set, and unchanged otherwise. Only the RISC-V entry stores
`COW` (in its first reserved software bit).

A RISC-V leaf entry must be readable or executable; `Rv64PTE.new_page` and
`Rv64PTE.set_flags` raise `ValueError` otherwise.

## Page tables

A `PageTable64` takes the architecture metadata, the entry type and a frame
handler. The helpers in `ptmultiarch.arch` assemble one for each
architecture; their optional second argument receives every TLB flush
request: the virtual address, or `None` for a full flush.

```python
from ptmultiarch.arch import x64_page_table
from ptmultiarch.entry import MappingFlags
from ptmultiarch.paging import PageSize, SimulatedMemory

memory = SimulatedMemory(0x8000_0000, 64)
flushed = []

with x64_page_table(memory, flushed.append) as table:
    table.map(0x4000_0000, 0x8020_0000, PageSize.SIZE_4K,
              MappingFlags.READ | MappingFlags.WRITE).flush()
    paddr, flags, size = table.query(0x4000_0123)   # 0x80200123, READ | WRITE, SIZE_4K

    # Identity-maps 4 MiB; with allow_huge this uses two 2M pages.
    table.map_region(0x1000_0000, lambda va: va, 0x40_0000,
                     MappingFlags.READ, True, False).flush_all()
    table.unmap_region(0x1000_0000, 0x40_0000, True).ignore()
```

Operations:

- `map`, `remap`, `protect`, `unmap`, `query` work on one page; `map` and the
  others return a `TlbFlush` token.
- `map_region`, `unmap_region`, `protect_region` work on a 4K-aligned region
  and return a `TlbFlushAll` token. `map_region` picks 1G or 2M pages when
  `allow_huge` is true and both addresses and the remaining size permit it.
- `walk(limit, pre_func, post_func)` visits present entries recursively, at
  most `limit` per table, calling the callbacks with the level, the index,
  the virtual address and the entry.
- `copy_from(other, start, size)` copies the top-level entries covering a
  range from another table; `clear_copy_range(start, size)` clears them again.
- `close()` (or leaving the `with` block) returns every intermediate table
  frame and the root frame to the handler.

A token is settled once with `flush()` / `flush_all()` or `ignore()`;
settling it twice raises `RuntimeError`.

Failures raise subclasses of `PagingError`: `NoMemoryError`,
`NotAlignedError`, `NotMappedError`, `AlreadyMappedError` and
`MappedToHugePageError`.

## Frame handlers

`SimulatedMemory(base, frame_count)` hands out 4K frames starting at `base`;
`allocated()` lists the frames in use. Any other store of frames can be used
by subclassing `PagingHandler` and implementing `alloc_frame`,
`dealloc_frame` and `frame` (which returns the frame's writable bytes).

## What this package does not do

It does not touch real hardware: TLB flushes are only passed to the callback
given to the metadata, and no page table is ever loaded into an MMU. Reading
or writing memory through a mapping is not provided either; tables only
translate addresses via `query`.