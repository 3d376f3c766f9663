"""
Installation, session and renewal services.
"""

from bunq_client.services.expiry_scheduler import ExpiryScheduler, ScheduledRenewal
from bunq_client.services.installer import Installer
from bunq_client.services.session_manager import SessionManager

__all__ = [
    "ExpiryScheduler",
    "Installer",
    "ScheduledRenewal",
    "SessionManager",
]
