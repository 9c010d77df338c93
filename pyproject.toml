[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "distillery"
version = "1.0.0"
description = "Building blocks for handling prebuilt release binaries: asset classification and extraction, checksum and cosign verification, Distfile parsing, configuration and release API clients."
requires-python = ">=3.11"
keywords = [
    "binaries",
    "releases",
    "checksum",
    "cosign",
    "distfile",
    "gitlab",
    "homebrew",
    "hashicorp",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Software Distribution",
    "Topic :: System :: Installation/Setup",
    "Topic :: Utilities",
]
dependencies = [
    "pyyaml",
    "cryptography",
    "requests",
    "zstandard",
]

[project.optional-dependencies]
test = [
    "pytest",
    "responses",
]

[project.scripts]
distillery-clean = "distillery.commands.clean:main"

[tool.hatch.build.targets.wheel]
packages = ["distillery"]

[tool.pytest.ini_options]
addopts = "-ra"
