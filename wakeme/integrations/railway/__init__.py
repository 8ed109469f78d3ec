"""Indian Railways PNR and running-status adapter."""

from .client import RailwayAPIError, RailwayClient, summarize_progress

__all__ = ["RailwayAPIError", "RailwayClient", "summarize_progress"]
