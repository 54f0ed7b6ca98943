[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "bookkit"
version = "0.1.0"
description = "Toolkit for mdBook preprocessors and postprocessors: diagnostics, progress reporting, Markdown patching and HTML social metadata"
requires-python = ">=3.11"
keywords = ["mdbook", "documentation", "markdown", "preprocessor", "opengraph"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Documentation",
    "Topic :: Text Processing :: Markup :: Markdown",
    "Topic :: Text Processing :: Markup :: HTML",
]
dependencies = [
    "jinja2>=3.1",
    "beautifulsoup4>=4.12",
    "pillow>=10.0",
    "requests>=2.31",
]

[project.optional-dependencies]
test = [
    "pytest>=7.4",
]

[project.scripts]
bookkit-socials = "bookkit.socials:main"
bookkit-analyzer = "bookkit.analyzer:main"

[tool.hatch.build.targets.wheel]
packages = ["bookkit"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py311"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.11"
warn_unused_ignores = true
warn_redundant_casts = true
