[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "spxprof"
version = "0.4.18"
description = "Building blocks of a simple function-level profiler: tracing and sampling profilers, a full event reporter and resource statistics"
requires-python = ">=3.10"
dependencies = []
keywords = ["profiler", "tracing", "sampling", "performance", "call-graph"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Operating System :: POSIX :: Linux",
    "Operating System :: MacOS",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Debuggers",
    "Topic :: System :: Benchmark",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["spxprof"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
