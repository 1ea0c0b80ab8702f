"""Emergency rental assistance application wizard."""

from .service import ApplicationService, CoreStatus, create_service

__version__ = "0.1.0"

__all__ = [
    'ApplicationService',
    'CoreStatus',
    'create_service',
]
