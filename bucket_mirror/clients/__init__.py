# Client packages
from .s3_manager import S3Manager, classify_error

__all__ = ['S3Manager', 'classify_error']
