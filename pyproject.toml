[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "ptmultiarch"
version = "0.5.4"
description = "Generic multi-level page tables and page table entries for several hardware architectures, in simulated memory"
requires-python = ">=3.10"
dependencies = []
keywords = ["paging", "page-table", "virtual-memory", "mmu", "tlb", "x86_64", "riscv", "aarch64", "loongarch64"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Operating System Kernels",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["ptmultiarch"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
