[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "mevkit"
version = "0.3.0"
description = "Relay multiplexing for proposers and bid auctions for block builders, on asyncio"
requires-python = ">=3.11"
dependencies = []
keywords = ["ethereum", "mev", "relay", "builder", "auction", "proposer", "asyncio"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Framework :: AsyncIO",
    "Topic :: System :: Distributed Computing",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[project.scripts]
mev = "mevkit.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["mevkit"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py311"
