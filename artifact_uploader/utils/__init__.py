"""
Utility modules for the artifact uploader.

- logging: Structured logging with entry/exit decorators
- config: Environment settings
- config_loader: YAML upload task documents
- metrics: Prometheus collectors
"""

from artifact_uploader.utils.logging import get_logger, log_function_call

__all__ = ["get_logger", "log_function_call"]
