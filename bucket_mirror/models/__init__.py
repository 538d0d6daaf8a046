"""
Models package for the bucket mirror.
"""
from .config import MirrorConfig
from .data_models import (
    ProbeOutcome,
    RemoteObject,
    RunReport,
    RunState,
    SyncResult,
    VerificationReport,
)
from .errors import (
    ConfigError,
    LockContentionError,
    MirrorError,
    MirrorSyncError,
    ProvisioningError,
)

__all__ = [
    'MirrorConfig',
    'ProbeOutcome',
    'RemoteObject',
    'RunReport',
    'RunState',
    'SyncResult',
    'VerificationReport',
    'ConfigError',
    'LockContentionError',
    'MirrorError',
    'MirrorSyncError',
    'ProvisioningError',
]
