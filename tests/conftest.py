"""
Pytest configuration and fixtures for the bucket mirror tests.
"""
import os
from typing import List

import pytest
from loguru import logger

from bucket_mirror.clients.s3_manager import S3Manager
from bucket_mirror.models.config import MirrorConfig
from bucket_mirror.services.provisioner import BucketProvisioner

from fake_s3 import ENCRYPTION_KEY, FakeClock, FakeS3Client


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_s3(clock):
    return FakeS3Client(clock)


@pytest.fixture
def local_dir(tmp_path):
    directory = tmp_path / 'source'
    directory.mkdir()
    return directory


@pytest.fixture
def make_config(tmp_path, local_dir):
    """Factory for MirrorConfig pointing at the temporary directories."""
    def _make_config(**overrides):
        values = dict(
            profile='default',
            region='us-east-1',
            bucket='test-bucket',
            retention_days=30,
            local_dir=str(local_dir),
            lock_file=str(tmp_path / 'run.lock'),
            encryption_key=ENCRYPTION_KEY,
            prefix='backup',
        )
        values.update(overrides)
        return MirrorConfig(**values)
    
    return _make_config


@pytest.fixture
def config(make_config):
    return make_config()


@pytest.fixture
def s3_manager(config, fake_s3):
    """S3Manager wired to the fake client."""
    return S3Manager(config, client=fake_s3)


@pytest.fixture
def provisioned(fake_s3, s3_manager, config):
    """Bucket created with versioning and the lifecycle rule."""
    BucketProvisioner(config, s3_manager).ensure_bucket()
    return fake_s3.buckets[config.bucket]


@pytest.fixture
def log_messages():
    """Collect loguru output as 'LEVEL|message' strings."""
    messages: List[str] = []
    handler_id = logger.add(lambda message: messages.append(message.rstrip('\n')),
                            level='DEBUG', format='{level}|{message}')
    yield messages
    logger.remove(handler_id)


@pytest.fixture
def write_file():
    """Return a helper creating a file (and parents) below a directory."""
    def _write_file(directory, relative_path: str, content: bytes) -> str:
        path = os.path.join(str(directory), *relative_path.split('/'))
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, 'wb') as handle:
            handle.write(content)
        return path
    
    return _write_file
