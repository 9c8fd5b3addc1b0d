"""Ingestion: upstream profile and media clients.

Components:
- RateLimiter: Minimum-spacing limiter shared by every poll loop
- HTTPClient / RetryConfig: httpx wrapper with exponential backoff
- ProfileClient (``profile_client``): Profile endpoint, produces Snapshot records
- MediaClient (``media_client``): Story and post endpoints, produces StoryItem / FeedItem
- FetchError: Transient upstream failure

The clients are imported from their modules; ``history.schemas`` depends
on ``ingestion.schemas`` and the profile client depends on it in turn.
"""

from profile_monitor.ingestion.http_client import HTTPClient, HTTPClientError, RetryConfig
from profile_monitor.ingestion.rate_limiter import RateLimiter
from profile_monitor.ingestion.schemas import FeedItem, FetchError, MediaKind, StoryItem

__all__ = [
    "FeedItem",
    "FetchError",
    "HTTPClient",
    "HTTPClientError",
    "MediaKind",
    "RateLimiter",
    "RetryConfig",
    "StoryItem",
]
