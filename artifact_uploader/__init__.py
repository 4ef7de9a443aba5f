"""
Artifact Uploader

Uploads build artifacts to object storage (Amazon S3 or Google Cloud
Storage), optionally gzip-compressed, and records an MD5 fingerprint of
every payload sent.

Subpackages:
- uploader: the single-file upload task and its building blocks
- utils: logging, configuration, task documents and metrics
"""

__version__ = "0.1.0"

from artifact_uploader.utils.logging import setup_logging

# Initialize default logging configuration
setup_logging()
