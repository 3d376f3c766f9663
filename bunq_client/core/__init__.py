"""Scheduling primitives shared by the API layer."""

from bunq_client.core.rate_limiter import RequestLimiter, RequestLimitFactory, path_template

__all__ = ["RequestLimiter", "RequestLimitFactory", "path_template"]
