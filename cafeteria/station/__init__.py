"""
Scanning station: HTTP client for the redemption API and the scan loop
state machine that drives it.
"""

from .client import BackendClient, StationError
from .scanner import ScanResult, ScanStation

__all__ = ["BackendClient", "ScanResult", "ScanStation", "StationError"]
