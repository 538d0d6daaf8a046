# Services package
from .coordinator import RunCoordinator
from .mirror import MirrorEngine
from .provisioner import BucketProvisioner
from .run_lock import RunLock
from .verifier import VerificationProber

__all__ = ['RunCoordinator', 'MirrorEngine', 'BucketProvisioner', 'RunLock', 'VerificationProber']
