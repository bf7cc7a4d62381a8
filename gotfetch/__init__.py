"""
gotfetch: named, superseding HTTP requests over httpx with method-preserving
redirects and structured response errors.
"""

from .config import ClientSettings, Config, LoggingSettings, RequestDefaults
from .coordinator import CancellationToken, RequestCoordinator
from .errors import (
    TOO_MANY_REDIRECTS,
    TOO_MANY_REDIRECTS_STATUS,
    GotFetchError,
    RequestCancelled,
    ResponseError,
    classify,
)
from .executor import RequestDescriptor, RequestExecutor, create_executor
from .log import configure_logging
from .redirects import RedirectFollower
from .shapes import gql, rest

__all__ = [
    'CancellationToken',
    'ClientSettings',
    'Config',
    'GotFetchError',
    'LoggingSettings',
    'RedirectFollower',
    'RequestCancelled',
    'RequestCoordinator',
    'RequestDefaults',
    'RequestDescriptor',
    'RequestExecutor',
    'ResponseError',
    'TOO_MANY_REDIRECTS',
    'TOO_MANY_REDIRECTS_STATUS',
    'classify',
    'configure_logging',
    'create_executor',
    'gql',
    'rest',
]
