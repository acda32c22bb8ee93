"""Make REST API client."""

from makescout.api.client import ClientConfig, MakeClient
from makescout.api.errors import MakeApiError, describe_error
from makescout.api.retry import RetryPolicy

__all__ = ["ClientConfig", "MakeApiError", "MakeClient", "RetryPolicy", "describe_error"]
