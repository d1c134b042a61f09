# ridehub/services/tracking_service/__init__.py
"""
Tracking Service: live ride-tracking sessions.

Provides:
- Session lifecycle (start, pause, resume, stop) as a small state machine
- Route point ingestion with incremental distance and speed statistics
- Live view of a trip's open sessions
"""
