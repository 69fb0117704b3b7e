"""HTTP client for the department backends."""

from .api_client_core import OrgChartClient, log_event
from .rate_limiter import AdaptiveRateLimiter

__all__ = ["AdaptiveRateLimiter", "OrgChartClient", "log_event"]
