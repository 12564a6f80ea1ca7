[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "tplaynow"
version = "0.1.0"
description = "Small TCP chat and message-passing toolkit with framed messages, a handshake and simple client/server programs"
requires-python = ">=3.10"
dependencies = []
keywords = ["chat", "tcp", "networking", "asyncio", "messaging", "client", "server"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Environment :: Console :: Curses",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Communications :: Chat",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[project.scripts]
tplaynow-chat-client = "tplaynow.chat_client:main"
tplaynow-chat-server = "tplaynow.chat_server:main"
tplaynow-simple-server = "tplaynow.simple_server:main"
tplaynow-simple-client = "tplaynow.simple_client:main"

[tool.hatch.build.targets.wheel]
packages = ["tplaynow"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
