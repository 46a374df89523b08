[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "bridgekit"
version = "0.1.0"
description = "Cross-chain bridge toolkit: chain registry, node selection, bridge API client and JSON-RPC building blocks"
requires-python = ">=3.10"
dependencies = []
keywords = ["bridge", "cross-chain", "json-rpc", "blockchain", "rpc"]
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
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["bridgekit"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
