"""Built-in storage backends.

Importing this package registers the ``fs``, ``ftp`` and ``s3`` factories
in the default registry.
"""

from objstore.backends.filesystem import FileSystemConfig, FileSystemStorage
from objstore.backends.ftp import FTPConfig, FTPStorage
from objstore.backends.s3 import S3Config, S3Storage

__all__ = [
    "FileSystemConfig",
    "FileSystemStorage",
    "FTPConfig",
    "FTPStorage",
    "S3Config",
    "S3Storage",
]
