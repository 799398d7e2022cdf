"""Linear GraphQL API client."""

from src.copilot.linear.client import LinearAPIError, LinearClient

__all__ = ["LinearAPIError", "LinearClient"]
