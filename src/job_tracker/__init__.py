"""
Top-level package for job-tracker.

Tracks long-running backend batch jobs (upload a file, trigger processing,
poll row status) from a client without a push channel.

Environment variables are loaded from the nearest `.env` so ``JOBS_*``
settings are available on import.
"""
from dotenv import find_dotenv, load_dotenv

# Keep side effect so JOBS_* settings are loaded on import.
_ = load_dotenv(find_dotenv(usecwd=True), override=False)

from .cache import CacheStats, EntryCache
from .cancellation import CancellationSource, CancellationToken
from .config import (
    JobServiceConfig,
    LoggingConfig,
    PollingConfig,
    Settings,
    StorageConfig,
    TransportConfig,
    configure,
    get_settings,
)
from .engine import JobLifecycleEngine, TriggerResult, ValidationResult
from .errors import (
    EmptyFileError,
    FetchDegradation,
    FileUploadError,
    JobCreationError,
    JobTrackerError,
    MissingColumnsError,
    OperationCancelled,
    PersistenceError,
    ProcessingTriggerError,
    TransportError,
    ValidationError,
)
from .logging import StructuredLogger, configure_logging, get_logger
from .messages import DefaultTranslator, Translator
from .navigation import NavigationEvent, NavigationEvents, NavigationKind, RoutePollingGuard
from .persistence import (
    FileSessionStore,
    InMemorySessionStore,
    RedisSessionStore,
    SafeStorage,
    SessionStore,
    build_session_store,
    open_session_store,
)
from .polling import JobCategory, PollingCoordinator
from .store import JobStore
from .streams import DerivedStream, StateStream
from .transport import AiohttpTransport, Transport, UploadFile
from .types import Job, JobDetailEntry, JobDetails, JobStatus, JobTypeState, RawRow, RowStatus

__version__ = "0.1.0"

__all__ = [
    # Core
    "JobStore",
    "EntryCache",
    "CacheStats",
    "JobLifecycleEngine",
    "TriggerResult",
    "ValidationResult",
    "PollingCoordinator",
    "JobCategory",
    # Types
    "Job",
    "JobStatus",
    "JobTypeState",
    "RawRow",
    "RowStatus",
    "JobDetails",
    "JobDetailEntry",
    # Streams
    "StateStream",
    "DerivedStream",
    # Collaborators
    "Transport",
    "AiohttpTransport",
    "UploadFile",
    "SessionStore",
    "InMemorySessionStore",
    "FileSessionStore",
    "RedisSessionStore",
    "SafeStorage",
    "build_session_store",
    "open_session_store",
    "Translator",
    "DefaultTranslator",
    "NavigationEvents",
    "NavigationEvent",
    "NavigationKind",
    "RoutePollingGuard",
    "CancellationToken",
    "CancellationSource",
    # Config
    "Settings",
    "JobServiceConfig",
    "PollingConfig",
    "TransportConfig",
    "StorageConfig",
    "LoggingConfig",
    "get_settings",
    "configure",
    # Logging
    "StructuredLogger",
    "get_logger",
    "configure_logging",
    # Errors
    "JobTrackerError",
    "ValidationError",
    "EmptyFileError",
    "MissingColumnsError",
    "FileUploadError",
    "ProcessingTriggerError",
    "JobCreationError",
    "TransportError",
    "FetchDegradation",
    "PersistenceError",
    "OperationCancelled",
]
