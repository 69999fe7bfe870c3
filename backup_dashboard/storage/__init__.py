from .base import BaseObjectStorage, ObjectStream, ProgressCallback
from .s3 import S3ObjectStorage

__all__ = ["BaseObjectStorage", "ObjectStream", "ProgressCallback", "S3ObjectStorage"]
