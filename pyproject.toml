[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "tubely"
version = "0.1.0"
description = "A small WSGI video API with SQLite metadata, local assets and presigned S3 video URLs."
requires-python = ">=3.10"
keywords = ["video", "wsgi", "s3", "sqlite", "presigned-url", "ffmpeg"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Web Environment",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
    "Topic :: Multimedia :: Video",
]
dependencies = [
    "werkzeug",
    "python-dotenv",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
tubely = "tubely.app:main"

[tool.hatch.build.targets.wheel]
packages = ["tubely"]

[tool.pytest.ini_options]
addopts = "-ra"
