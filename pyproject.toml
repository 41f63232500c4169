[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "helin"
version = "0.1.0"
description = "Building blocks of a small storage engine: a segmented write-ahead log, typed values, schemas and tuples."
requires-python = ">=3.10"
dependencies = []
keywords = ["database", "write-ahead-log", "wal", "storage-engine", "tuple", "schema"]
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
    "Topic :: Database :: Database Engines/Servers",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["helin"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
