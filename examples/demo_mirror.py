#!/usr/bin/env python3
"""
Simple demo of a bucket mirror run.

This script demonstrates:
- Building the configuration from MIRROR_* environment variables
- Mirroring a generated directory to the bucket
- Inspecting the verification report

Point MIRROR_ENDPOINT at an S3 compatible server with TLS (SSE-C requires
HTTPS) and make sure MIRROR_PROFILE names a credentials profile for it.
"""
import os
import sys
import tempfile
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from bucket_mirror.models.config import MirrorConfig
from bucket_mirror.services.coordinator import RunCoordinator
from loguru import logger


def setup_demo_environment(source_dir: str, work_dir: str):
    """Configure environment for demo."""
    os.environ.setdefault('MIRROR_PROFILE', 'default')
    os.environ.setdefault('MIRROR_REGION', 'us-east-1')
    os.environ.setdefault('MIRROR_BUCKET', 'mirror-demo')
    os.environ.setdefault('MIRROR_RETENTION_DAYS', '30')
    os.environ.setdefault('MIRROR_PREFIX', 'demo')
    os.environ.setdefault('MIRROR_ENCRYPTION_KEY', 'demo-key-demo-key-demo-key-demo!')
    os.environ['MIRROR_LOCAL_DIR'] = source_dir
    os.environ['MIRROR_LOCK_FILE'] = os.path.join(work_dir, 'demo.lock')
    os.environ['MIRROR_LISTING_FILE'] = os.path.join(work_dir, 'listing.txt')


def create_sample_tree(source_dir: str):
    """Write a few files to mirror."""
    samples = {
        'notes/readme.txt': b'Mirrored with a customer-provided key.\n',
        'data/numbers.csv': b'id,value\n1,10\n2,20\n',
        'images/pixel.bin': bytes(range(256)),
    }
    for relative_path, content in samples.items():
        path = Path(source_dir, relative_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)


def main():
    """Run bucket mirror demo."""
    # Configure logging
    logger.remove()
    logger.add(sys.stderr, format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> - <level>{message}</level>", level="INFO")
    
    logger.info("Bucket Mirror Demo")
    
    with tempfile.TemporaryDirectory(prefix='mirror-demo-') as work_dir:
        source_dir = os.path.join(work_dir, 'source')
        create_sample_tree(source_dir)
        
        try:
            setup_demo_environment(source_dir, work_dir)
            config = MirrorConfig.from_env()
            
            logger.info(f"Mirroring {config.local_dir} to {config.destination}")
            report = RunCoordinator(config).run()
            
            logger.success("Run completed!")
            logger.info(f"Bucket created: {report.bucket_created}")
            logger.info(f"Files uploaded: {report.sync.transferred}")
            logger.info(f"Objects deleted: {len(report.sync.deleted)}")
            
            verification = report.verification
            if verification is not None and not verification.skipped:
                logger.info(f"Verified sample: {verification.sample}")
                for outcome in verification.outcomes:
                    status = 'ok' if outcome.passed else 'ANOMALY'
                    logger.info(f"  • {outcome.name}: {outcome.observed or 'success'} ({status})")
            
            for warning in report.warnings:
                logger.warning(f"Warning: {warning}")
            
            if report.listing_file:
                logger.info(Path(report.listing_file).read_text())
            
        except Exception as e:
            logger.error(f"Demo failed: {str(e)}")
            return 1
    
    return 0


if __name__ == "__main__":
    sys.exit(main())
