[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "vescore"
version = "1.32.0"
description = "Data model for VES vaults: users, vault items, sharing entries and event watches"
requires-python = ">=3.10"
dependencies = []
keywords = ["encryption", "vault", "key-management", "sharing", "events"]
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
    "Topic :: Security :: Cryptography",
    "Topic :: Software Development :: Libraries :: Python Modules",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["vescore"]

[tool.pytest.ini_options]
addopts = "-ra"
