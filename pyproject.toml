[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "kcore"
version = "0.1.0"
description = "In-memory kernel core: page and slab allocators, a virtual file system with tmpfs, devfs and pipes, tar initrd extraction and a line-disciplined TTY."
requires-python = ">=3.10"
dependencies = []
keywords = ["vfs", "tmpfs", "devfs", "pipe", "tty", "allocator", "kernel", "simulation"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Filesystems",
    "Topic :: System :: Operating System Kernels",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["kcore"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 88
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
