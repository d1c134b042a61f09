# ridehub/services/__init__.py
"""
Application services.

- tracking_service: ride-tracking sessions over HTTP
- realtime_ws: WebSocket gateway (connection registry, rooms, event handlers)
- auth: access-token resolution for both transports
"""
