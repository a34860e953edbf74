[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "slotchain"
version = "0.1.0"
description = "A small slot-based proof-of-stake blockchain node with an HTTP API, in-memory state and quorum voting."
requires-python = ">=3.10"
keywords = ["blockchain", "proof-of-stake", "consensus", "mempool", "node", "aiohttp"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Framework :: AsyncIO",
    "Framework :: aiohttp",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Distributed Computing",
]
dependencies = [
    "aiohttp>=3.9",
    "python-dotenv>=1.0",
]

[project.optional-dependencies]
test = [
    "pytest>=7.4",
    "pytest-asyncio>=0.23",
]

[project.scripts]
slotchain = "slotchain.server:main"

[tool.hatch.build.targets.wheel]
packages = ["slotchain"]

[tool.hatch.build.targets.sdist]
include = ["slotchain", "tests", "README.md", "pyproject.toml"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
