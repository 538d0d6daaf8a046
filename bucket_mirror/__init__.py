"""
Bucket Mirror - one-way, client-side encrypted mirroring of a directory to an S3 bucket.
"""

from .services.coordinator import RunCoordinator
from .models.config import MirrorConfig
from .models.data_models import RunReport, RunState, SyncResult, VerificationReport
from .models.errors import MirrorError

__version__ = "1.0.0"
__all__ = [
    "RunCoordinator",
    "MirrorConfig",
    "RunReport",
    "RunState",
    "SyncResult",
    "VerificationReport",
    "MirrorError",
]
