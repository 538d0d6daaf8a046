"""
Main entry point for the bucket mirror.
"""
import os
import sys
from pathlib import Path
from typing import List, Optional

from loguru import logger

from .models.config import MirrorConfig
from .models.errors import MirrorError
from .services.coordinator import RunCoordinator


EXIT_SUCCESS = 0
EXIT_FAILURE = 1

HELP_TEXT = """
Bucket Mirror - Command Line Interface

USAGE:
    bucket-mirror CONFIG_FILE
    python -m bucket_mirror.main CONFIG_FILE

Mirrors LOCAL_DIR to s3://BUCKET/PREFIX with client-side (SSE-C) encryption,
then verifies one random file with wrong and correct keys.

CONFIGURATION KEYS (KEY=value, one per line):
    PROFILE          AWS credentials profile (required)
    REGION           Bucket region (required)
    BUCKET           Bucket name (required)
    RETENTION_DAYS   Days to keep noncurrent versions (required)
    LOCAL_DIR        Directory to mirror (required)
    LOCK_FILE        Lock file preventing overlapping runs (required)
    ENCRYPTION_KEY   32 byte encryption key (required)
    PREFIX           Key prefix inside the bucket
    LISTING_FILE     Write a recursive bucket listing here
    TIMEOUT          Connect/read timeout in seconds (default: 60)
    FOLLOW_SYMLINKS  Follow symbolic links (default: false)
    ENDPOINT         Custom S3 endpoint URL
    ESCROW_PREFIX    Prefix holding the key backup (default: encryption-key-backup/)
    MAX_ATTEMPTS     Attempts per S3 call (default: 3)

ENVIRONMENT VARIABLES:
    LOG_LEVEL        Console log level (default: INFO)
    LOG_FILE         Also write DEBUG logs to this rotating file
"""


def setup_logging():
    """Configure logging for the bucket mirror."""
    # Remove default logger
    logger.remove()
    
    # Add console logger with appropriate format
    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        level=os.getenv('LOG_LEVEL', 'INFO').upper()
    )
    
    log_file = os.getenv('LOG_FILE')
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            rotation="10 MB",
            retention="7 days",
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
            level="DEBUG"
        )


def print_help():
    """Print help information for the CLI."""
    print(HELP_TEXT)


def run(config_path: str) -> int:
    """
    Load the configuration and execute one mirror run.
    
    Args:
        config_path: Path of the configuration file
        
    Returns:
        Process exit code
    """
    try:
        config = MirrorConfig.from_file(config_path)
        logger.info(f"Loaded configuration - Destination: {config.destination}")
        
        report = RunCoordinator(config).run()
    except MirrorError as e:
        logger.critical(f"Run failed ({e.kind}): {e}")
        return EXIT_FAILURE
    except Exception as e:
        logger.critical(f"Run failed: {e}")
        return EXIT_FAILURE
    
    for warning in report.warnings:
        logger.warning(f"Completed with warning: {warning}")
    return EXIT_SUCCESS


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point handling the command line arguments."""
    setup_logging()
    
    args = sys.argv[1:] if argv is None else argv
    
    if len(args) == 1 and args[0] in ("help", "--help", "-h"):
        print_help()
        return EXIT_SUCCESS
    
    if len(args) != 1:
        logger.error(f"Expected exactly one argument (configuration file), got {len(args)}")
        print_help()
        return EXIT_FAILURE
    
    try:
        return run(args[0])
    except KeyboardInterrupt:
        logger.info("Received interrupt signal, shutting down")
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
