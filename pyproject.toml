[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "edgecore"
version = "0.1.0"
description = "Core runtime utilities: environment detection, levelled assertions and tracked memory allocators"
requires-python = ">=3.10"
dependencies = []
keywords = ["assertions", "allocator", "memory tracking", "environment detection", "debugging"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Libraries",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
edgecore = "edgecore.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["edgecore"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
