[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "flightrec"
version = "0.1.0"
description = "Network flight recorder toolkit: AlphaSOC Engine API client, configuration handling, Elasticsearch search building and alert formatting."
requires-python = ">=3.10"
keywords = ["network", "security", "telemetry", "alerts", "elasticsearch", "cef"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Security",
    "Topic :: System :: Networking :: Monitoring",
]
dependencies = [
    "requests>=2.25",
    "pyyaml>=5.4",
    "psutil>=5.8",
]

[project.optional-dependencies]
test = [
    "pytest>=7",
    "responses>=0.22",
]

[project.scripts]
flightrec = "flightrec.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["flightrec"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
ignore_missing_imports = true
