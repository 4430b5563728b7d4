"""Business logic services package."""

from verifier.services.database import Database, DatabaseNotInitializedError
from verifier.services.event_store import EventStore
from verifier.services.github_client import GitHubAPIError, GitHubClient, RateLimitError
from verifier.services.ingestor import EventIngestor, is_completion_signal
from verifier.services.processor import BackgroundProcessor, VerificationInProgressError
from verifier.services.project_mapping import (
    ProjectMapping,
    ProjectMappingError,
    UnsafeIdentifierError,
)
from verifier.services.redis_client import RedisClient, RedisConnectionError
from verifier.services.result_publisher import ResultPublisher
from verifier.services.result_store import VerificationResultStore
from verifier.services.scheduler import PeriodicScheduler
from verifier.services.signature import SignatureValidator
from verifier.services.verification_runner import VerificationRunner, derive_status
from verifier.services.workspace import WorkspaceResolver

__all__ = [
    'Database',
    'DatabaseNotInitializedError',
    'EventStore',
    'GitHubAPIError',
    'GitHubClient',
    'RateLimitError',
    'EventIngestor',
    'is_completion_signal',
    'BackgroundProcessor',
    'VerificationInProgressError',
    'ProjectMapping',
    'ProjectMappingError',
    'UnsafeIdentifierError',
    'RedisClient',
    'RedisConnectionError',
    'ResultPublisher',
    'VerificationResultStore',
    'PeriodicScheduler',
    'SignatureValidator',
    'VerificationRunner',
    'derive_status',
    'WorkspaceResolver',
]
