# ridehub/core/__init__.py
"""
Collaborator repositories: trips, users, chat messages, notifications.
"""
