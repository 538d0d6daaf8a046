"""
Tests for the VerificationProber class.
"""
import random
import pytest
from unittest.mock import Mock

from bucket_mirror.clients.s3_manager import BAD_REQUEST, FORBIDDEN, S3Manager
from bucket_mirror.services.mirror import MirrorEngine
from bucket_mirror.services.verifier import SHORT_DUMMY_KEY, VerificationProber


class LastChoice(random.Random):
    """Random source that always picks the last candidate."""
    
    def choice(self, seq):
        return seq[-1]


@pytest.fixture
def synced(config, s3_manager, provisioned, local_dir, write_file):
    """Local tree with two files mirrored to the fake bucket."""
    write_file(local_dir, 'a.txt', b'alpha')
    write_file(local_dir, 'docs/b.txt', b'bravo')
    MirrorEngine(config, s3_manager).sync()
    return local_dir


def outcomes_by_name(report):
    return {outcome.name: outcome for outcome in report.outcomes}


class TestVerificationProber:
    """Test cases for VerificationProber."""
    
    def test_probe_sequence_passes(self, config, s3_manager, synced):
        """Test the full probe sequence against a correctly mirrored file."""
        report = VerificationProber(config, s3_manager, rng=random.Random(7)).verify()
        
        assert report.passed is True
        assert report.sample in ('a.txt', 'docs/b.txt')
        assert [o.name for o in report.outcomes] == ['wrong-path', 'short-key', 'wrong-key', 'correct-key']
        outcomes = outcomes_by_name(report)
        assert outcomes['wrong-path'].observed == BAD_REQUEST
        assert outcomes['short-key'].observed == FORBIDDEN
        assert outcomes['wrong-key'].observed == FORBIDDEN
        assert outcomes['correct-key'].observed is None
        assert outcomes['correct-key'].materialized is True
        assert report.content_match is True
    
    def test_negative_probes_leave_no_file(self, config, s3_manager, synced):
        """Test rejected downloads never materialize a file."""
        report = VerificationProber(config, s3_manager, rng=random.Random(1)).verify()
        
        for name in ('wrong-path', 'short-key', 'wrong-key'):
            assert outcomes_by_name(report)[name].materialized is False
    
    def test_short_key_is_rejected(self, config, s3_manager, synced):
        """Test a 7 character dummy key gets a rejection, not a silent success."""
        report = VerificationProber(config, s3_manager, rng=random.Random(3)).verify()
        
        short_key = outcomes_by_name(report)['short-key']
        assert len(SHORT_DUMMY_KEY) == 7
        assert short_key.observed == FORBIDDEN
        assert short_key.passed is True
    
    def test_wrong_path_does_not_exist(self, config, s3_manager, synced):
        """Test the wrong-path probe targets a mutated key under the prefix."""
        report = VerificationProber(config, s3_manager, rng=LastChoice()).verify()
        
        wrong_path = outcomes_by_name(report)['wrong-path']
        assert report.sample == 'docs/b.txt'
        assert wrong_path.key.startswith('backup/docs/b.txt.')
        assert wrong_path.key != 'backup/docs/b.txt'
    
    def test_injected_rng_selects_sample(self, config, s3_manager, synced):
        """Test the sample comes from the injected random source."""
        prober = VerificationProber(config, s3_manager, rng=LastChoice())
        
        assert prober.choose_sample() == 'docs/b.txt'
    
    def test_sample_skips_escrow_folder(self, make_config, fake_s3, local_dir, write_file):
        """Test that files kept out of the mirror are never chosen for verification."""
        config = make_config(prefix='')
        write_file(local_dir, 'a.txt', b'alpha')
        write_file(local_dir, 'encryption-key-backup/key.gpg', b'escrow')
        prober = VerificationProber(config, S3Manager(config, client=fake_s3), rng=LastChoice())
        
        assert prober.choose_sample() == 'a.txt'
    
    def test_wrong_key_differs_from_configured_key(self, config, s3_manager):
        """Test the generated wrong key is well-formed and never the real key."""
        prober = VerificationProber(config, s3_manager, rng=random.Random(0))
        
        wrong_key = prober._wrong_key()
        
        assert len(wrong_key) == 32
        assert wrong_key != config.encryption_key
    
    def test_empty_tree_is_skipped(self, config, s3_manager, provisioned, fake_s3):
        """Test verification is skipped when there is nothing to verify."""
        fake_s3.calls.clear()
        
        report = VerificationProber(config, s3_manager).verify()
        
        assert report.skipped is True
        assert report.passed is True
        assert 'download_file' not in fake_s3.calls
    
    def test_unencrypted_object_is_reported(self, config, s3_manager, provisioned, local_dir,
                                            write_file, fake_s3, log_messages):
        """Test that an object readable with any key is flagged as critical."""
        write_file(local_dir, 'a.txt', b'alpha')
        fake_s3.put_object(Bucket='test-bucket', Key='backup/a.txt', Body=b'alpha')
        
        report = VerificationProber(config, s3_manager).verify()
        
        assert report.passed is False
        anomalies = {o.name for o in report.anomalies}
        assert anomalies == {'short-key', 'wrong-key'}
        assert all(o.materialized for o in report.anomalies)
        assert any(m.startswith('CRITICAL|Probe wrong-key') for m in log_messages)
    
    def test_content_mismatch_is_reported(self, config, s3_manager, synced, write_file, log_messages):
        """Test that a downloaded file differing from the source is flagged."""
        write_file(synced, 'a.txt', b'ALPHA')
        write_file(synced, 'docs/b.txt', b'BRAVO')
        
        report = VerificationProber(config, s3_manager).verify()
        
        assert report.content_match is False
        assert report.passed is False
        assert any('does not match local file' in m for m in log_messages)
    
    def test_correct_key_failure_is_reported(self, config, synced):
        """Test that a failing correct-key download is non-fatal but fails the report."""
        client = Mock()
        client.download_file.side_effect = Exception('An error occurred (403) when calling the HeadObject operation: Forbidden')
        
        report = VerificationProber(config, S3Manager(config, client=client)).verify()
        
        correct_key = outcomes_by_name(report)['correct-key']
        assert correct_key.observed == FORBIDDEN
        assert correct_key.passed is False
        assert report.content_match is False
        assert report.passed is False
