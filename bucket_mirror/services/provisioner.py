"""
Bucket provisioning: create the target bucket with versioning and retention.
"""
from typing import Any, Dict, List

from loguru import logger

from ..clients.s3_manager import S3Error, S3Manager
from ..models.config import MirrorConfig
from ..models.errors import ProvisioningError


# Days before incomplete multipart uploads are aborted
ABORT_MULTIPART_DAYS = 3

LIFECYCLE_RULE_ID = 'expire-noncurrent-versions'


def build_lifecycle_rules(retention_days: int) -> List[Dict[str, Any]]:
    """
    Build the lifecycle rules applied to a newly created bucket.
    
    Noncurrent versions are expired after ``retention_days``, delete markers
    left without versions are removed and stale multipart uploads aborted.
    
    Args:
        retention_days: Days a noncurrent version is kept
        
    Returns:
        List with the single lifecycle rule
    """
    return [
        {
            'ID': LIFECYCLE_RULE_ID,
            'Status': 'Enabled',
            'Filter': {'Prefix': ''},
            'Expiration': {'ExpiredObjectDeleteMarker': True},
            'NoncurrentVersionExpiration': {'NoncurrentDays': retention_days},
            'AbortIncompleteMultipartUpload': {'DaysAfterInitiation': ABORT_MULTIPART_DAYS},
        }
    ]


class BucketProvisioner:
    """Ensures the target bucket exists with versioning and lifecycle rules."""
    
    def __init__(self, config: MirrorConfig, s3_manager: S3Manager):
        self.config = config
        self.s3_manager = s3_manager
    
    def ensure_bucket(self) -> bool:
        """
        Create the bucket if it does not exist yet.
        
        An existing bucket is left untouched, including its versioning and
        lifecycle settings. The lookup and the creation are separate calls, so
        two hosts provisioning the same name at once can still race.
        
        Returns:
            bool: True if the bucket was created, False if it already existed
            
        Raises:
            ProvisioningError: If any S3 call fails
        """
        name = self.config.bucket
        
        try:
            existing = self.s3_manager.list_bucket_names()
        except S3Error as e:
            raise ProvisioningError(f"Failed to list buckets: {e}") from e
        
        if name in existing:
            logger.info(f"Bucket {name} already exists - leaving its configuration unchanged")
            return False
        
        logger.info(f"Creating bucket {name} in {self.config.region}")
        try:
            self.s3_manager.create_bucket(name, self.config.region)
            self.s3_manager.enable_versioning(name)
            self.s3_manager.put_lifecycle_rules(name, build_lifecycle_rules(self.config.retention_days))
        except S3Error as e:
            raise ProvisioningError(f"Failed to provision bucket {name}: {e}") from e
        
        logger.info(f"Bucket {name} created with versioning and {self.config.retention_days} day retention")
        return True
