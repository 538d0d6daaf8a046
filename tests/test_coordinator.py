"""
Tests for the RunCoordinator class.
"""
import random
import pytest
from unittest.mock import patch

from bucket_mirror.clients.s3_manager import S3Manager
from bucket_mirror.models.data_models import RunState
from bucket_mirror.models.errors import LockContentionError, MirrorSyncError, ProvisioningError
from bucket_mirror.services.coordinator import RunCoordinator
from bucket_mirror.services.run_lock import RunLock

from fake_s3 import make_client_error


@pytest.fixture
def coordinator(config, s3_manager):
    return RunCoordinator(config, s3_manager=s3_manager, rng=random.Random(11))


def seed_escrow(fake_s3):
    fake_s3.put_object(Bucket='test-bucket', Key='encryption-key-backup/key.asc', Body=b'escrow')


class TestRunCoordinator:
    """Test cases for RunCoordinator."""
    
    def test_full_run(self, coordinator, fake_s3, local_dir, write_file):
        """Test a run on a fresh bucket reaches DONE with every step done."""
        write_file(local_dir, 'a.txt', b'alpha')
        write_file(local_dir, 'b.txt', b'bravo')
        
        report = coordinator.run()
        
        assert report.state == RunState.DONE
        assert report.bucket_created is True
        assert report.sync.transferred == 2
        assert report.verification.passed is True
        assert coordinator.lock.locked is False
    
    def test_steps_run_in_order(self, coordinator, fake_s3, local_dir, write_file, log_messages):
        """Test the state sequence of a run."""
        write_file(local_dir, 'a.txt', b'alpha')
        
        coordinator.run()
        
        states = [m.split('Run state: ')[1] for m in log_messages if 'Run state: ' in m]
        assert states == [
            'lock_acquired', 'provisioned', 'synced', 'verified', 'listed', 'escrowed', 'done'
        ]
    
    def test_second_run_is_idempotent(self, coordinator, fake_s3, local_dir, write_file):
        """Test a second run neither recreates the bucket nor transfers files."""
        write_file(local_dir, 'a.txt', b'alpha')
        coordinator.run()
        
        report = coordinator.run()
        
        assert report.bucket_created is False
        assert report.sync.transferred == 0
        assert report.sync.deleted == []
    
    def test_lock_contention_fails_before_provisioning(self, config, coordinator, fake_s3):
        """Test a concurrent run exits before touching the bucket."""
        with RunLock(config.lock_file):
            with pytest.raises(LockContentionError):
                coordinator.run()
        
        assert fake_s3.calls == []
        assert coordinator.report.state == RunState.IDLE
    
    def test_provisioning_failure_is_fatal(self, config, coordinator, fake_s3):
        """Test that a provisioning failure stops the run and frees the lock."""
        with patch.object(fake_s3, 'list_buckets', side_effect=make_client_error(403, 'ListBuckets')):
            with pytest.raises(ProvisioningError):
                coordinator.run()
        
        assert coordinator.report.state == RunState.LOCK_ACQUIRED
        assert 'upload_file' not in fake_s3.calls
        with RunLock(config.lock_file) as lock:
            assert lock.locked is True
    
    def test_mirror_failure_is_fatal(self, coordinator, fake_s3, local_dir, write_file):
        """Test that a mirror failure stops the run before verification."""
        write_file(local_dir, 'a.txt', b'alpha')
        
        with patch.object(fake_s3, 'upload_file', side_effect=make_client_error(500, 'PutObject', code='InternalError')):
            with pytest.raises(MirrorSyncError):
                coordinator.run()
        
        assert coordinator.report.state == RunState.PROVISIONED
        assert 'download_file' not in fake_s3.calls
    
    def test_verification_failure_is_not_fatal(self, coordinator, fake_s3, local_dir, write_file, log_messages):
        """Test that a verification error is logged and the run completes."""
        write_file(local_dir, 'a.txt', b'alpha')
        
        with patch.object(coordinator.prober, 'verify', side_effect=RuntimeError('probe crashed')):
            report = coordinator.run()
        
        assert report.state == RunState.DONE
        assert any(m.startswith('CRITICAL|Verification could not run') for m in log_messages)
    
    def test_missing_escrow_is_a_warning(self, coordinator, fake_s3, local_dir, write_file, log_messages):
        """Test that a missing key backup is reported without failing the run."""
        write_file(local_dir, 'a.txt', b'alpha')
        
        report = coordinator.run()
        
        assert report.state == RunState.DONE
        assert report.escrow_present is False
        assert 'encryption key backup missing' in report.warnings
        assert any(m.startswith('CRITICAL|No encryption key backup found') for m in log_messages)
    
    def test_escrow_present(self, config, s3_manager, fake_s3, local_dir, write_file):
        """Test that an existing key backup satisfies the escrow check."""
        write_file(local_dir, 'a.txt', b'alpha')
        coordinator = RunCoordinator(config, s3_manager=s3_manager)
        coordinator.provisioner.ensure_bucket()
        seed_escrow(fake_s3)
        
        report = coordinator.run()
        
        assert report.escrow_present is True
        assert report.warnings == []
    
    def test_listing_file_written(self, make_config, fake_s3, local_dir, write_file, tmp_path):
        """Test the optional listing file contains the mirrored objects."""
        listing_path = tmp_path / 'out' / 'listing.txt'
        config = make_config(listing_file=str(listing_path))
        write_file(local_dir, 'a.txt', b'alpha')
        
        report = RunCoordinator(config, s3_manager=S3Manager(config, client=fake_s3)).run()
        
        listing = listing_path.read_text()
        assert report.listing_file == str(listing_path)
        assert 'backup/a.txt' in listing
        assert 'Total Objects: 1' in listing
        assert '   Total Size: 5' in listing
    
    def test_listing_failure_is_not_fatal(self, make_config, fake_s3, local_dir, write_file, tmp_path):
        """Test that an unwritable listing path only produces a warning."""
        blocker = tmp_path / 'blocker'
        blocker.write_text('not a directory')
        config = make_config(listing_file=str(blocker / 'listing.txt'))
        write_file(local_dir, 'a.txt', b'alpha')
        
        report = RunCoordinator(config, s3_manager=S3Manager(config, client=fake_s3)).run()
        
        assert report.state == RunState.DONE
        assert report.listing_file is None
        assert any(w.startswith('listing error') for w in report.warnings)
    
    def test_empty_tree_run(self, coordinator, fake_s3):
        """Test a run with nothing to mirror skips verification."""
        report = coordinator.run()
        
        assert report.state == RunState.DONE
        assert report.sync.transferred == 0
        assert report.verification.skipped is True
