[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "sslnet"
version = "0.1.0"
description = "Building blocks for HTTP over TCP or TLS on asyncio: TLS contexts, certificate node ids, rate limiting and request streams"
requires-python = ">=3.10"
keywords = ["http", "tls", "ssl", "asyncio", "rate-limiter", "x509", "certificates"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Framework :: AsyncIO",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
    "Topic :: Security :: Cryptography",
    "Typing :: Typed",
]
dependencies = [
    "cryptography",
    "h11",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
    "cryptography",
]

[tool.hatch.build.targets.wheel]
packages = ["sslnet"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
