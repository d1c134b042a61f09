# ridehub/shared/__init__.py
"""
Models shared between services.
"""
