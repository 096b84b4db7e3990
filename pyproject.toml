[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "lteradiotrack"
version = "0.1.0"
description = "Bookkeeping for passive LTE air-interface analysis: HARQ state, DCI format ranking, MCS table tracking, uplink scheduling and subframe power."
requires-python = ">=3.10"
dependencies = [
    "numpy",
]
keywords = ["lte", "harq", "mcs", "dci", "sniffer", "telephony", "radio"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Intended Audience :: Telecommunications Industry",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Communications :: Telephony",
    "Topic :: Scientific/Engineering",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["lteradiotrack"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
