[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "csemark"
version = "0.1.0"
description = "Course mark publishing: imports mark sheets from CSV links into MongoDB and serves them over HTTP and a Telegram bot"
requires-python = ">=3.10"
keywords = ["marks", "grades", "education", "telegram", "bot", "mongodb", "csv"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Environment :: Web Environment",
    "Framework :: Flask",
    "Intended Audience :: Education",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Education",
]
dependencies = [
    "pymongo>=4.2",
    "flask>=2.2",
    "requests>=2.28",
    "python-dotenv>=1.0",
    "tabulate>=0.9",
]

[project.optional-dependencies]
test = [
    "pytest>=7.0",
]

[project.scripts]
csemark-api = "csemark.api:main"
csemark-fetcher = "csemark.fetcher:main"
csemark-tele = "csemark.tele_bot:main"

[tool.hatch.build.targets.wheel]
packages = ["csemark"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
ignore_missing_imports = true
