[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "sockframe"
version = "0.1.0"
description = "WebSocket framing, messages, codecs, handshake validation and a blocking upgrade server built on the standard library"
requires-python = ">=3.10"
dependencies = []
keywords = ["websocket", "rfc6455", "framing", "codec", "server", "handshake"]
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
    "Topic :: Internet :: WWW/HTTP",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["sockframe"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
