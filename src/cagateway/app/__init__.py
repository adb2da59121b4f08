"""Flask application package for CAGATEWAY.

Public API::

    from cagateway.app import create_app
"""

from cagateway.app.factory import create_app

__all__ = ["create_app"]
