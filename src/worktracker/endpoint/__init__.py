"""HTTP control endpoint for worktracker.

Exposes session control, status, timelines, browser frame upload and
an event stream over FastAPI.
"""

from worktracker.endpoint.server import create_app, serve

__all__ = ["create_app", "serve"]
