[build-system]
requires = ["setuptools>=64", "wheel"]
build-backend = "setuptools.build_meta"

[project]
name = "dilithium"
version = "0.1.0"
description = "Wire format, buffer pooling, instrumentation and TCP/TLS harness tools for a reliable transport"
requires-python = ">=3.10"
dependencies = [
    "cryptography",
]
keywords = ["networking", "transport", "flow-control", "wire-format", "tunnel", "echo", "metrics"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
dilithium = "dilithium.cli:main"

[tool.setuptools.packages.find]
include = ["dilithium*"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
