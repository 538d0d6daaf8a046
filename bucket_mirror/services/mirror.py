"""
Mirror engine: one-way sync of the local tree to the bucket prefix.
"""
from typing import Callable, Dict

from botocore.exceptions import BotoCoreError, ClientError
from loguru import logger

from ..clients.s3_manager import S3Error, S3Manager
from ..models.config import MirrorConfig
from ..models.data_models import RemoteObject, SyncResult
from ..models.errors import MirrorSyncError
from .local_tree import LocalFile, scan_local_tree


class MirrorEngine:
    """
    Reconciles the remote prefix with the local directory.
    
    New and changed files are uploaded with SSE-C encryption, remote objects
    without a local counterpart are deleted. A file counts as changed when its
    size differs or its modification time is newer than the remote object.
    Keys under the escrow prefix are left alone in both directions.
    """
    
    def __init__(self, config: MirrorConfig, s3_manager: S3Manager):
        self.config = config
        self.s3_manager = s3_manager
    
    def sync(self) -> SyncResult:
        """
        Mirror the local directory to the configured prefix.
        
        Returns:
            SyncResult with uploaded and deleted keys
            
        Raises:
            MirrorSyncError: If the local tree cannot be read or any S3 call fails
        """
        config = self.config
        result = SyncResult()
        
        logger.info(f"Mirroring {config.local_dir} to {config.destination}")
        
        try:
            local_tree = scan_local_tree(config.local_dir, config.follow_symlinks)
        except OSError as e:
            raise MirrorSyncError(f"Cannot read local directory {config.local_dir}: {e}") from e
        
        result.skipped_symlinks = local_tree.skipped_symlinks
        for relative_path in local_tree.skipped_symlinks:
            logger.debug(f"Skipping symlink: {relative_path}")
        
        try:
            remote = self._remote_objects()
        except S3Error as e:
            raise MirrorSyncError(f"Failed to list {config.destination}: {e}") from e
        
        for relative_path in local_tree.relative_paths():
            local_file = local_tree.files[relative_path]
            key = config.object_key(relative_path)
            
            if config.in_escrow(key):
                result.skipped_escrow.append(relative_path)
                logger.warning(f"Not uploading {relative_path}: {key} is under the key escrow prefix")
                continue
            
            if not self._needs_upload(local_file, remote.get(key)):
                result.unchanged += 1
                continue
            
            try:
                self.s3_manager.upload_file(
                    local_file.path,
                    key,
                    config.encryption_key,
                    callback=self._progress_logger(key, local_file.size)
                )
            except (ClientError, BotoCoreError, OSError) as e:
                raise MirrorSyncError(f"Failed to upload {relative_path} to {key}: {e}") from e
            
            result.uploaded.append(key)
            logger.info(f"upload: {relative_path} to s3://{config.bucket}/{key}")
        
        local_keys = {config.object_key(path) for path in local_tree.files}
        stale_keys = sorted(
            key for key in remote
            if key not in local_keys and not config.in_escrow(key)
        )
        
        if stale_keys:
            try:
                errors = self.s3_manager.delete_objects(stale_keys)
            except S3Error as e:
                raise MirrorSyncError(f"Failed to delete stale objects: {e}") from e
            
            if errors:
                failed = ', '.join(f"{err.get('Key')} ({err.get('Code')})" for err in errors)
                raise MirrorSyncError(f"Failed to delete stale objects: {failed}")
            
            for key in stale_keys:
                logger.info(f"delete: s3://{config.bucket}/{key}")
            result.deleted = stale_keys
        
        logger.info(f"Mirror completed - Uploaded: {result.transferred}, "
                    f"Deleted: {len(result.deleted)}, Unchanged: {result.unchanged}")
        return result
    
    def _remote_objects(self) -> Dict[str, RemoteObject]:
        return {obj.key: obj for obj in self.s3_manager.list_objects(self.config.key_prefix)}
    
    @staticmethod
    def _needs_upload(local_file: LocalFile, remote_object) -> bool:
        if remote_object is None:
            return True
        if remote_object.size != local_file.size:
            return True
        return local_file.mtime > remote_object.last_modified.timestamp()
    
    @staticmethod
    def _progress_logger(key: str, total: int) -> Callable[[int], None]:
        """Progress callback that logs partial transfers without counting them."""
        transferred = [0]
        
        def _callback(bytes_amount: int) -> None:
            transferred[0] += bytes_amount
            logger.debug(f"Completed {transferred[0]} of {total} bytes for {key}")
        
        return _callback
