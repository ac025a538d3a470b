[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "zinxutil"
version = "0.1.0"
description = "Server utilities: hierarchical timing-wheel scheduler, sharded concurrent map, snowflake IDs and a rotating log writer"
requires-python = ">=3.10"
dependencies = []
keywords = ["timing wheel", "timer", "scheduler", "concurrent map", "fnv", "snowflake", "log rotation", "zip"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Libraries",
    "Topic :: System :: Logging",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["zinxutil"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
