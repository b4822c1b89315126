"""Services package - exports all service modules."""

from .api_check import check_api_config, probe_api_connection
from .completion_client import (
    CompletionClient,
    CompletionSettings,
    CompletionError,
    CancellationToken,
    PendingRequest,
    parse_completion_response,
)

__all__ = [
    "check_api_config",
    "probe_api_connection",
    "CompletionClient",
    "CompletionSettings",
    "CompletionError",
    "CancellationToken",
    "PendingRequest",
    "parse_completion_response",
]
