"""
ridehub: live ride-tracking and real-time event backend for rider communities.
"""

__version__ = "0.3.0"
