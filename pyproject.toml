[build-system]
requires = ["setuptools>=61"]
build-backend = "setuptools.build_meta"

[project]
name = "nebulastore"
version = "2.0.0"
description = "Object storage toolkit: an S3-compatible request handler and HTTP server, a metadata store and storage backends"
requires-python = ">=3.10"
dependencies = []
keywords = ["s3", "object-storage", "filesystem", "metadata", "storage", "http"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Filesystems",
    "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
nebulastore-server = "nebulastore.http_server:main"

[tool.setuptools.packages.find]
include = ["nebulastore*"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]
