[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "cdjformat"
version = "0.1.0"
description = "Prepare USB drives for rekordbox: format to FAT32, verify, benchmark and eject (macOS & Windows)"
requires-python = ">=3.10"
dependencies = []
keywords = ["rekordbox", "cdj", "xdj", "fat32", "usb", "format", "dj"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: End Users/Desktop",
    "Operating System :: MacOS",
    "Operating System :: Microsoft :: Windows",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Filesystems",
    "Topic :: Utilities",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
cdjf = "cdjformat.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["cdjformat"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
