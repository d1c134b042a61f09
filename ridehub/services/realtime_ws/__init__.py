# ridehub/services/realtime_ws/__init__.py
"""
Realtime WebSocket Gateway.

Provides:
- Authenticated WebSocket connections (one per user, last connect wins)
- Per-trip chat and location-sharing rooms
- Per-user delivery of trip status updates and notifications
- Typed client events dispatched to RealtimeEventHandlers
"""
