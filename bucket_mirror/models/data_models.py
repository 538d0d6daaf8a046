"""
Result models produced by a bucket mirror run.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class RunState(str, Enum):
    """Progress of a run; each state is reached in this order."""
    IDLE = 'idle'
    LOCK_ACQUIRED = 'lock_acquired'
    PROVISIONED = 'provisioned'
    SYNCED = 'synced'
    VERIFIED = 'verified'
    LISTED = 'listed'
    ESCROWED = 'escrowed'
    DONE = 'done'


@dataclass
class RemoteObject:
    """Represents a current object under the mirrored prefix."""
    key: str
    size: int
    last_modified: object


@dataclass
class SyncResult:
    """Outcome of a single mirror pass."""
    uploaded: List[str] = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)
    skipped_symlinks: List[str] = field(default_factory=list)
    skipped_escrow: List[str] = field(default_factory=list)
    unchanged: int = 0

    @property
    def transferred(self) -> int:
        """Number of files uploaded during the pass."""
        return len(self.uploaded)


@dataclass
class ProbeOutcome:
    """Result of one verification download attempt."""
    name: str
    key: str
    expected: Optional[str]
    observed: Optional[str]
    materialized: bool = False
    detail: str = ''

    @property
    def passed(self) -> bool:
        # Negative probes must fail with the expected class and leave nothing behind
        if self.expected is None:
            return self.observed is None and self.materialized
        return self.observed == self.expected and not self.materialized


@dataclass
class VerificationReport:
    """Outcome of the verification probe sequence."""
    sample: Optional[str] = None
    outcomes: List[ProbeOutcome] = field(default_factory=list)
    content_match: Optional[bool] = None
    skipped: bool = False

    @property
    def passed(self) -> bool:
        if self.skipped:
            return True
        return bool(self.outcomes) and all(o.passed for o in self.outcomes) and bool(self.content_match)

    @property
    def anomalies(self) -> List[ProbeOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.passed]


@dataclass
class RunReport:
    """Summary of a completed run."""
    state: RunState = RunState.IDLE
    bucket_created: bool = False
    sync: Optional[SyncResult] = None
    verification: Optional[VerificationReport] = None
    listing_file: Optional[str] = None
    escrow_present: Optional[bool] = None
    warnings: List[str] = field(default_factory=list)
