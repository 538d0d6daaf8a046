"""
Run coordinator: sequences a complete mirror run under the run lock.
"""
import os
import random
from typing import Optional

from loguru import logger

from ..clients.s3_manager import S3Manager
from ..models.config import MirrorConfig
from ..models.data_models import RunReport, RunState
from .mirror import MirrorEngine
from .provisioner import BucketProvisioner
from .run_lock import RunLock
from .verifier import VerificationProber


class RunCoordinator:
    """
    Orchestrates one mirror run.
    
    Steps run in a fixed order: lock, provision, mirror, verify, write the
    listing, check the key escrow. Failures while locking, provisioning or
    mirroring propagate and end the run. Failures in the later steps are
    logged at critical level and the run still completes.
    """
    
    def __init__(self, config: MirrorConfig, s3_manager: Optional[S3Manager] = None,
                 rng: Optional[random.Random] = None):
        """
        Initialize the coordinator with configuration.
        
        Args:
            config: Validated mirror configuration
            s3_manager: S3 manager to use; built from config if omitted
            rng: Random source passed to the verification prober
        """
        self.config = config
        self.s3_manager = s3_manager or S3Manager(config)
        self.lock = RunLock(config.lock_file)
        self.provisioner = BucketProvisioner(config, self.s3_manager)
        self.mirror = MirrorEngine(config, self.s3_manager)
        self.prober = VerificationProber(config, self.s3_manager, rng=rng)
        self.report = RunReport()
    
    def run(self) -> RunReport:
        """
        Execute the complete run.
        
        Returns:
            RunReport in state DONE
            
        Raises:
            LockContentionError: If another run holds the lock
            ProvisioningError: If the bucket cannot be provisioned
            MirrorSyncError: If the mirror pass fails
        """
        report = self.report = RunReport()
        
        with self.lock:
            self._advance(RunState.LOCK_ACQUIRED)
            
            report.bucket_created = self.provisioner.ensure_bucket()
            self._advance(RunState.PROVISIONED)
            
            report.sync = self.mirror.sync()
            self._advance(RunState.SYNCED)
            
            self._verify()
            self._advance(RunState.VERIFIED)
            
            self._write_listing()
            self._advance(RunState.LISTED)
            
            self._check_escrow()
            self._advance(RunState.ESCROWED)
            
            self._advance(RunState.DONE)
        
        logger.info(f"Run completed - Uploaded: {report.sync.transferred}, "
                    f"Deleted: {len(report.sync.deleted)}, "
                    f"Warnings: {len(report.warnings)}")
        return report
    
    def _advance(self, state: RunState) -> None:
        self.report.state = state
        logger.debug(f"Run state: {state.value}")
    
    def _verify(self) -> None:
        try:
            verification = self.prober.verify()
        except Exception as e:
            logger.critical(f"Verification could not run: {e}")
            self.report.warnings.append(f"verification error: {e}")
            return
        
        self.report.verification = verification
        if not verification.passed:
            self.report.warnings.append(f"verification failed for {verification.sample}")
    
    def _write_listing(self) -> None:
        listing_file = self.config.listing_file
        if not listing_file:
            return
        
        try:
            listing = self.s3_manager.format_listing(self.config.key_prefix)
            directory = os.path.dirname(os.path.abspath(listing_file))
            os.makedirs(directory, exist_ok=True)
            with open(listing_file, 'w', encoding='utf-8') as output:
                output.write(listing)
        except Exception as e:
            logger.critical(f"Failed to write bucket listing to {listing_file}: {e}")
            self.report.warnings.append(f"listing error: {e}")
            return
        
        self.report.listing_file = listing_file
        logger.info(f"Wrote bucket listing to {listing_file}")
    
    def _check_escrow(self) -> None:
        escrow_prefix = self.config.escrow_prefix
        try:
            present = self.s3_manager.has_objects(escrow_prefix)
        except Exception as e:
            logger.critical(f"Failed to check key escrow at s3://{self.config.bucket}/{escrow_prefix}: {e}")
            self.report.warnings.append(f"escrow check error: {e}")
            return
        
        self.report.escrow_present = present
        if not present:
            logger.critical(f"No encryption key backup found at s3://{self.config.bucket}/{escrow_prefix}")
            self.report.warnings.append('encryption key backup missing')
        else:
            logger.info("Encryption key backup present")
