# app/api/__init__.py
"""🌐 REST API for the Mini Apps and the payment provider webhook."""

from app.api.app import create_app

__all__ = ["create_app"]
