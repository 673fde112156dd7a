"""
Application Services Layer

Orchestrates domain services and coordinates use cases.
"""

from .dependency_container import DependencyContainer, DependencyNotFoundError
from .download_result import DownloadResult
from .event_publisher import EventPublisher
from .file_share_service import FileShareService
from .reclamation_scheduler import ReclamationScheduler, SweepReport

__all__ = [
    'DependencyContainer',
    'DependencyNotFoundError',
    'DownloadResult',
    'EventPublisher',
    'FileShareService',
    'ReclamationScheduler',
    'SweepReport',
]
