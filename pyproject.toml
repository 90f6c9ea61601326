[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "plcmodbus"
version = "0.1.0"
description = "A small Modbus TCP client with cached process images, plus a rate-monotonic task scheduler for periodic polling."
requires-python = ">=3.10"
dependencies = []
keywords = ["modbus", "modbus-tcp", "plc", "industrial", "scheduler", "polling"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Manufacturing",
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
test = ["pytest"]

[project.scripts]
plcmodbus = "plcmodbus.app:main"

[tool.hatch.build.targets.wheel]
packages = ["plcmodbus"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
