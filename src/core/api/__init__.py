"""
HTTP surface of the authorization engine.

Mount ``api_router`` (or build the whole app with ``create_app``); every
route is guarded by the dependencies in ``core.rbac.dependencies``.
"""

from .router import api_router

__all__ = ["api_router"]
