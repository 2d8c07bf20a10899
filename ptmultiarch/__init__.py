"""Multi-level page tables in simulated memory, with x86_64, RISC-V, AArch64 and LoongArch64 entry formats."""

__version__ = "0.5.4"

__all__ = ["arch", "entry", "paging", "pte_aarch64", "pte_loongarch64", "pte_riscv", "pte_x86_64", "table"]