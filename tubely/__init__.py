"""WSGI video API with SQLite metadata, local assets and presigned S3 video URLs."""

__version__ = "0.1.0"