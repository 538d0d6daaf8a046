"""
Exception types raised by the mirror components.

Each error carries a short ``kind`` so the command line entry point can report
what failed without parsing messages.
"""


class MirrorError(Exception):
    """Base class for fatal mirror run errors."""
    kind = 'error'


class ConfigError(MirrorError):
    """Raised when the configuration is incomplete or invalid."""
    kind = 'config'


class LockContentionError(MirrorError):
    """Raised when another run already holds the run lock."""
    kind = 'lock'


class ProvisioningError(MirrorError):
    """Raised when the target bucket cannot be looked up or created."""
    kind = 'provisioning'


class MirrorSyncError(MirrorError):
    """Raised when the local tree cannot be mirrored to the bucket."""
    kind = 'sync'
