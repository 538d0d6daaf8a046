"""
Verification prober for a freshly mirrored bucket.

After each mirror pass one real file is picked at random and downloaded four
times, in this order:

1. ``wrong-path``: a key that does not exist, with the correct encryption
   key. The request must be rejected as a bad request.
2. ``short-key``: the real key with a too-short dummy encryption key. The
   request must be rejected as forbidden.
3. ``wrong-key``: the real key with a well-formed but wrong encryption key.
   The request must be rejected as forbidden.
4. ``correct-key``: the real key with the configured encryption key. The
   download must succeed and match the local file byte for byte.

None of the rejected attempts may leave a file behind. Every anomaly is
logged at critical level; nothing here stops the run.
"""
import filecmp
import os
import random
import string
import tempfile
from typing import List, Optional, Tuple

from loguru import logger

from ..clients.s3_manager import BAD_REQUEST, FORBIDDEN, S3Manager, classify_error
from ..models.config import ENCRYPTION_KEY_LENGTH, MirrorConfig
from ..models.data_models import ProbeOutcome, VerificationReport
from .local_tree import scan_local_tree


SHORT_DUMMY_KEY = 'invalid'

_KEY_ALPHABET = string.ascii_letters + string.digits
_SUFFIX_LENGTH = 12
_HEX_DIGITS = '0123456789abcdef'


class VerificationProber:
    """Probes one mirrored file with wrong and correct key material."""
    
    def __init__(self, config: MirrorConfig, s3_manager: S3Manager,
                 rng: Optional[random.Random] = None):
        """
        Args:
            config: Mirror configuration
            s3_manager: S3 manager bound to the target bucket
            rng: Random source for the sample and dummy keys; defaults to
                ``random.SystemRandom``
        """
        self.config = config
        self.s3_manager = s3_manager
        self.rng = rng or random.SystemRandom()
    
    def choose_sample(self) -> Optional[str]:
        """Pick one local relative path uniformly at random, or None if there are no files."""
        tree = scan_local_tree(self.config.local_dir, self.config.follow_symlinks)
        # Files under the escrow prefix are never mirrored
        paths = [
            path for path in tree.relative_paths()
            if not self.config.in_escrow(self.config.object_key(path))
        ]
        if not paths:
            return None
        return self.rng.choice(paths)
    
    def verify(self) -> VerificationReport:
        """
        Run the probe sequence against a random local file.
        
        Returns:
            VerificationReport describing every attempt
        """
        sample = self.choose_sample()
        if sample is None:
            logger.info("No local files to verify - skipping verification")
            return VerificationReport(skipped=True)
        
        key = self.config.object_key(sample)
        local_path = os.path.join(self.config.local_dir, *sample.split('/'))
        report = VerificationReport(sample=sample)
        
        logger.info(f"Verifying s3://{self.config.bucket}/{key}")
        
        with tempfile.TemporaryDirectory(prefix='bucket-mirror-verify-') as workdir:
            for name, probe_key, encryption_key, expected in self._probes(key):
                destination = os.path.join(workdir, name, os.path.basename(sample) or 'sample')
                os.makedirs(os.path.dirname(destination))
                
                outcome = self._attempt(name, probe_key, encryption_key, expected, destination)
                report.outcomes.append(outcome)
                
                if expected is None and outcome.materialized:
                    report.content_match = filecmp.cmp(local_path, destination, shallow=False)
                    if not report.content_match:
                        logger.critical(f"Downloaded {key} does not match local file {sample}")
        
        if report.content_match is None:
            # The correct-key download produced nothing to compare
            report.content_match = False
        
        if report.passed:
            logger.info(f"Verification passed for {sample}")
        else:
            logger.critical(f"Verification failed for {sample}: "
                            f"{len(report.anomalies)} probe anomalies, content match: {report.content_match}")
        return report
    
    def _probes(self, key: str) -> List[Tuple[str, str, str, Optional[str]]]:
        return [
            ('wrong-path', self._mutate_key(key), self.config.encryption_key, BAD_REQUEST),
            ('short-key', key, SHORT_DUMMY_KEY, FORBIDDEN),
            ('wrong-key', key, self._wrong_key(), FORBIDDEN),
            ('correct-key', key, self.config.encryption_key, None),
        ]
    
    def _attempt(self, name: str, key: str, encryption_key: str,
                 expected: Optional[str], destination: str) -> ProbeOutcome:
        observed = None
        detail = ''
        try:
            self.s3_manager.download_file(key, destination, encryption_key)
        except Exception as e:
            observed = classify_error(e)
            detail = str(e)
        
        outcome = ProbeOutcome(
            name=name,
            key=key,
            expected=expected,
            observed=observed,
            materialized=os.path.exists(destination),
            detail=detail
        )
        
        if expected is not None and outcome.materialized:
            logger.critical(f"Probe {name}: {key} was downloaded to {destination} "
                            f"although the request should have been rejected ({expected})")
        elif not outcome.passed:
            wanted = expected or 'success'
            logger.critical(f"Probe {name}: expected {wanted} for {key}, got {observed or 'success'}"
                            + (f" - {detail}" if detail else ''))
        else:
            logger.debug(f"Probe {name} passed ({observed or 'success'})")
        
        return outcome
    
    def _mutate_key(self, key: str) -> str:
        suffix = ''.join(self.rng.choice(_HEX_DIGITS) for _ in range(_SUFFIX_LENGTH))
        return f"{key}.{suffix}"
    
    def _wrong_key(self) -> str:
        while True:
            candidate = ''.join(self.rng.choice(_KEY_ALPHABET) for _ in range(ENCRYPTION_KEY_LENGTH))
            if candidate != self.config.encryption_key:
                return candidate
