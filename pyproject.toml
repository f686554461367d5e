[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "ltnts"
version = "0.1.0"
description = "MPEG transport stream building blocks: bitstreams, section extraction, statistics, PCR smoothing and segmented recording"
requires-python = ">=3.10"
dependencies = []
keywords = ["mpeg-ts", "transport stream", "pcr", "psi", "bitstream", "sei", "broadcast", "video"]
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
    "Topic :: Multimedia :: Video",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["ltnts"]

[tool.pytest.ini_options]
addopts = "-ra"
