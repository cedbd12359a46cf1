"""
Version management for the ContentDesk API
"""
from app.__version__ import __version__

API_VERSION = __version__

# Feature flags
FEATURES = {
    "client_portal": True,
    "approval_links": True,
    "late_scheduling": True,
    "stripe_billing": True,
    "ai_credits": True,
}


def get_version_info():
    """Get version and feature information"""
    return {
        "version": API_VERSION,
        "features": FEATURES,
    }
