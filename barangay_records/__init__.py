"""
Barangay records management API.

The package exposes a Flask application factory (see `app.create_app`)
serving residents, households, incidents, services, officials and
certificate generation as a JSON API.
"""

__all__ = []
