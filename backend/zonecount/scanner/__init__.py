from .store import KeyValueStore, MemoryStore, JsonFileStore
from .stager import (
    DuplicateScanError,
    OfflineError,
    ScanStager,
    StagedScan,
    SubmissionResult,
    KIND_EAN,
    KIND_SERIAL,
    staging_key,
)
from .client import ApiClient, ApiError

__all__ = [
    'KeyValueStore', 'MemoryStore', 'JsonFileStore',
    'DuplicateScanError', 'OfflineError', 'ScanStager', 'StagedScan',
    'SubmissionResult', 'staging_key', 'KIND_EAN', 'KIND_SERIAL',
    'ApiClient', 'ApiError',
]
