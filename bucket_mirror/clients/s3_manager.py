"""
S3 client manager wrapping the boto3 calls used by the mirror.
"""
from typing import Any, Callable, Dict, Iterator, List, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from loguru import logger

from ..models.config import MirrorConfig
from ..models.data_models import RemoteObject


# Region where S3 rejects an explicit LocationConstraint
DEFAULT_REGION = 'us-east-1'

SSE_C_ALGORITHM = 'AES256'
CONTENT_TYPE = 'application/octet-stream'
STORAGE_CLASS = 'STANDARD_IA'

# S3 DeleteObjects accepts at most this many keys per request
DELETE_BATCH_SIZE = 1000

BAD_REQUEST = 'Bad Request'
FORBIDDEN = 'Forbidden'
NOT_FOUND = 'Not Found'

_STATUS_CLASSES = {
    400: BAD_REQUEST,
    403: FORBIDDEN,
    404: NOT_FOUND,
}

_CODE_CLASSES = {
    '400': BAD_REQUEST,
    'BadRequest': BAD_REQUEST,
    'InvalidArgument': BAD_REQUEST,
    'InvalidRequest': BAD_REQUEST,
    '403': FORBIDDEN,
    'AccessDenied': FORBIDDEN,
    'Forbidden': FORBIDDEN,
    '404': NOT_FOUND,
    'NoSuchKey': NOT_FOUND,
    'NotFound': NOT_FOUND,
}

S3Error = (ClientError, BotoCoreError)


def sse_c_args(encryption_key: str) -> Dict[str, str]:
    """Request arguments presenting a customer-provided encryption key."""
    # botocore base64-encodes the key and adds its MD5 itself
    return {
        'SSECustomerAlgorithm': SSE_C_ALGORITHM,
        'SSECustomerKey': encryption_key,
    }


def classify_error(error: Exception) -> str:
    """
    Reduce an S3 error to a short classification.
    
    Structured ClientError responses are classified by HTTP status and then
    by error code. Errors without a structured response fall back to
    matching the text 'Bad Request', 'Forbidden' or 'Not Found'.
    
    Args:
        error: Exception raised by a boto3 call
        
    Returns:
        One of BAD_REQUEST, FORBIDDEN, NOT_FOUND, or the raw error code
    """
    if isinstance(error, ClientError):
        response = error.response or {}
        status = response.get('ResponseMetadata', {}).get('HTTPStatusCode')
        if status in _STATUS_CLASSES:
            return _STATUS_CLASSES[status]

        code = str(response.get('Error', {}).get('Code', ''))
        if code in _CODE_CLASSES:
            return _CODE_CLASSES[code]
        if code:
            return code

    message = str(error)
    for error_class in (BAD_REQUEST, FORBIDDEN, NOT_FOUND):
        if error_class in message:
            return error_class
    return type(error).__name__


class S3Manager:
    """Manages S3 operations against the configured bucket."""
    
    def __init__(self, config: MirrorConfig, client: Optional[Any] = None):
        """
        Initialize S3Manager with the mirror configuration.
        
        Args:
            config: Validated mirror configuration
            client: Pre-built S3 client, mostly for tests
        """
        self.config = config
        self.bucket = config.bucket
        self.client = client if client is not None else self._create_s3_client(config)
        
        logger.debug(f"S3Manager initialized for bucket {self.bucket} in {config.region}")
    
    def _create_s3_client(self, config: MirrorConfig):
        """Create an S3 client from the configured profile and timeouts."""
        try:
            session = boto3.Session(profile_name=config.profile, region_name=config.region)
            client = session.client(
                's3',
                endpoint_url=config.endpoint,
                config=Config(
                    connect_timeout=config.timeout,
                    read_timeout=config.timeout,
                    retries={'max_attempts': config.max_attempts, 'mode': 'standard'},
                ),
            )
            logger.debug(f"Created S3 client for profile {config.profile} (endpoint: {config.endpoint or 'default'})")
            return client
        except Exception as e:
            logger.error(f"Failed to create S3 client for profile {config.profile}: {e}")
            raise
    
    def list_bucket_names(self) -> List[str]:
        """Return the names of all buckets visible to the credentials."""
        response = self.client.list_buckets()
        return [bucket['Name'] for bucket in response.get('Buckets', [])]
    
    def create_bucket(self, name: str, region: str) -> None:
        """
        Create a private bucket in the given region.
        
        Args:
            name: Bucket name
            region: Target region; no location constraint is sent for us-east-1
        """
        params: Dict[str, Any] = {'Bucket': name, 'ACL': 'private'}
        if region != DEFAULT_REGION:
            params['CreateBucketConfiguration'] = {'LocationConstraint': region}
        
        self.client.create_bucket(**params)
        logger.debug(f"Created bucket {name} in {region}")
    
    def enable_versioning(self, name: str) -> None:
        """Turn on object versioning for a bucket."""
        self.client.put_bucket_versioning(
            Bucket=name,
            VersioningConfiguration={'Status': 'Enabled'}
        )
    
    def put_lifecycle_rules(self, name: str, rules: List[Dict[str, Any]]) -> None:
        """Replace the lifecycle configuration of a bucket."""
        self.client.put_bucket_lifecycle_configuration(
            Bucket=name,
            LifecycleConfiguration={'Rules': rules}
        )
    
    def list_objects(self, prefix: str = '') -> Iterator[RemoteObject]:
        """
        List the current objects under a prefix.
        
        Args:
            prefix: Key prefix to list ('' for the whole bucket)
            
        Yields:
            RemoteObject: Current (non-historical) objects
        """
        paginator = self.client.get_paginator('list_objects_v2')
        for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
            for obj in page.get('Contents', []):
                yield RemoteObject(
                    key=obj['Key'],
                    size=obj['Size'],
                    last_modified=obj['LastModified']
                )
    
    def has_objects(self, prefix: str) -> bool:
        """Check whether at least one object exists under a prefix."""
        response = self.client.list_objects_v2(Bucket=self.bucket, Prefix=prefix, MaxKeys=1)
        return response.get('KeyCount', len(response.get('Contents', []))) > 0
    
    def upload_file(self, path: str, key: str, encryption_key: str,
                    callback: Optional[Callable[[int], None]] = None) -> None:
        """
        Upload a local file as a private, opaque, SSE-C encrypted object.
        
        Args:
            path: Local file path
            key: Destination object key
            encryption_key: Customer-provided encryption key
            callback: Optional progress callback receiving byte counts
        """
        extra_args = {
            'ACL': 'private',
            'ContentType': CONTENT_TYPE,
            'StorageClass': STORAGE_CLASS,
        }
        extra_args.update(sse_c_args(encryption_key))
        
        self.client.upload_file(
            Filename=path,
            Bucket=self.bucket,
            Key=key,
            ExtraArgs=extra_args,
            Callback=callback
        )
    
    def delete_objects(self, keys: List[str]) -> List[Dict[str, Any]]:
        """
        Delete objects in batches.
        
        With versioning enabled this only adds delete markers.
        
        Args:
            keys: Object keys to delete
            
        Returns:
            List of per-key errors reported by S3 (empty on full success)
        """
        errors: List[Dict[str, Any]] = []
        for start in range(0, len(keys), DELETE_BATCH_SIZE):
            batch = keys[start:start + DELETE_BATCH_SIZE]
            response = self.client.delete_objects(
                Bucket=self.bucket,
                Delete={'Objects': [{'Key': key} for key in batch], 'Quiet': True}
            )
            errors.extend(response.get('Errors', []))
        return errors
    
    def download_file(self, key: str, destination: str, encryption_key: Optional[str]) -> None:
        """
        Download an object to a local path.
        
        Args:
            key: Object key
            destination: Local file path to write
            encryption_key: Customer-provided key, or None to send no key
        """
        extra_args = sse_c_args(encryption_key) if encryption_key is not None else None
        self.client.download_file(
            Bucket=self.bucket,
            Key=key,
            Filename=destination,
            ExtraArgs=extra_args
        )
    
    def format_listing(self, prefix: str = '') -> str:
        """
        Render a recursive listing with a summary footer.
        
        Timestamps are shown in local time, like `aws s3 ls`.
        
        Args:
            prefix: Key prefix to list
            
        Returns:
            Listing text, one line per object followed by totals
        """
        lines = []
        total_objects = 0
        total_size = 0
        for obj in self.list_objects(prefix):
            timestamp = obj.last_modified.astimezone().strftime('%Y-%m-%d %H:%M:%S')
            lines.append(f"{timestamp} {obj.size:>10} {obj.key}")
            total_objects += 1
            total_size += obj.size
        
        lines.append('')
        lines.append(f"Total Objects: {total_objects}")
        lines.append(f"   Total Size: {total_size}")
        return '\n'.join(lines) + '\n'
