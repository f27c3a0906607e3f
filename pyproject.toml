[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "locengine"
version = "0.1.0"
description = "Location engine helpers: NMEA sentence generation, daemon control messages over named pipes, XTRA injection and network-initiated session handling"
requires-python = ">=3.10"
dependencies = []
keywords = ["gps", "gnss", "nmea", "location", "agps", "named-pipe"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: GIS",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["locengine"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
