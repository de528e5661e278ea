"""
Backstage HTTP gateway: REST access to the Backstage services.

The gateway resolves the acting user from the X-User-Email header and maps
service errors to HTTP status codes. It never bypasses service-level checks.
"""

from .app import create_app
from .routes import router
from .settings import GatewaySettings

__all__ = ["GatewaySettings", "create_app", "router"]
