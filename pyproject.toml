[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "orchtx"
version = "0.1.0"
description = "Transaction building, broadcasting with retry strategies, and response parsing for Cosmos-style chains"
requires-python = ">=3.10"
dependencies = []
keywords = ["cosmos", "cosmwasm", "transactions", "broadcast", "retry", "blockchain"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Framework :: AsyncIO",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[tool.hatch.build.targets.wheel]
packages = ["orchtx"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
