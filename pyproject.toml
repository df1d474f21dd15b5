[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "stargaze"
version = "0.1.0"
description = "In-memory models of a chain's inflation allocation and privileged-contract cron modules, with chain readiness and process watcher tools"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "blockchain",
    "cosmos",
    "inflation",
    "allocation",
    "vesting",
    "cron",
    "bech32",
    "smart-contracts",
]
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
    "Topic :: Office/Business :: Financial",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
stargaze-readiness-checker = "stargaze.readiness:main"
stargaze-watcher = "stargaze.watcher:main"

[tool.hatch.build.targets.wheel]
packages = ["stargaze"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
