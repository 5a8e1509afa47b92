"""
Scheduled AI news digests delivered by email
"""

__version__ = "1.0.0"
