[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "fenrisd"
version = "0.1.0"
description = "File server over TCP with ECDH key exchange, AES-GCM sealed messages and an in-memory directory tree"
requires-python = ">=3.10"
keywords = ["file server", "ecdh", "aes-gcm", "remote files", "daemon", "lru cache"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: No Input/Output (Daemon)",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: File Transfer Protocol (FTP)",
    "Topic :: Security :: Cryptography",
]
dependencies = [
    "cryptography",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
fenrisd = "fenrisd.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["fenrisd"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 88
target-version = "py310"
