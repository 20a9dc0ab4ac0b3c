"""
Storage for uploaded manuscript files.

Files are written beneath a root directory on a (possibly shared) filesystem.
The workflow only ever sees the :class:`.FileDescriptor` returned by
:meth:`.FileStore.persist`; the descriptor is recorded on the manuscript by
the :class:`.AddFile` event.
"""

import hashlib
import logging
import os
from typing import Optional

from dataclasses import dataclass, field
from flask import Flask, current_app, has_app_context
from werkzeug.utils import secure_filename

from ..domain.meta import ALLOWED_MIME_TYPES, MAX_FILE_SIZE, FileKind
from ..domain.util import get_tzaware_utc_now

logger = logging.getLogger(__name__)


class FileRejected(ValueError):
    """The file is of an unsupported type, empty, or too large."""


class ConfigurationError(RuntimeError):
    """A required parameter is invalid/missing from the application config."""


@dataclass
class FileMetadata:
    """What we know about an upload before it is stored."""

    kind: FileKind
    mime_type: str
    original_name: str = field(default_factory=str)
    draft_id: Optional[int] = field(default=None)
    submission_id: Optional[int] = field(default=None)

    def __post_init__(self) -> None:
        """Make sure that :attr:`.kind` is a :class:`.FileKind`."""
        if not isinstance(self.kind, FileKind):
            self.kind = FileKind(self.kind)


@dataclass
class FileDescriptor:
    """Where a stored file lives, and how to check its integrity."""

    path: str
    """Path relative to the root of the store."""

    checksum: str
    """Hex MD5 digest of the content."""

    size: int


class FileStore(object):
    """Persists uploaded files beneath :attr:`root`."""

    def __init__(self, root: str, max_size: int = MAX_FILE_SIZE) -> None:
        self.root = root
        self.max_size = max_size

    def check(self, content: bytes, metadata: FileMetadata) -> None:
        """
        Verify that a file is acceptable before storing it.

        Raises
        ------
        :class:`.FileRejected`

        """
        if metadata.mime_type not in ALLOWED_MIME_TYPES:
            raise FileRejected(f'Unsupported file type: {metadata.mime_type}')
        if not content:
            raise FileRejected('File is empty')
        if len(content) > self.max_size:
            raise FileRejected(f'File exceeds {self.max_size} bytes')

    def persist(self, content: bytes, metadata: FileMetadata) \
            -> FileDescriptor:
        """
        Store the content of an uploaded file.

        Parameters
        ----------
        content : bytes
        metadata : :class:`.FileMetadata`

        Returns
        -------
        :class:`.FileDescriptor`

        Raises
        ------
        :class:`.FileRejected`
            Raised if the file is of an unsupported type, empty, or too
            large. Nothing is written in that case.

        """
        self.check(content, metadata)
        relative = self._path_for(metadata)
        target = os.path.join(self.root, relative)
        os.makedirs(os.path.dirname(target), exist_ok=True)
        with open(target, 'wb') as f:
            f.write(content)
        checksum = hashlib.md5(content).hexdigest()
        logger.debug('Stored %s (%i bytes, md5 %s)', relative, len(content),
                     checksum)
        return FileDescriptor(path=relative, checksum=checksum,
                              size=len(content))

    def open(self, path: str) -> bytes:
        """Read the content of a stored file."""
        with open(self._resolve(path), 'rb') as f:
            return f.read()

    def remove(self, path: str) -> None:
        """Delete a stored file, e.g. one that was never recorded."""
        target = self._resolve(path)
        try:
            os.remove(target)
        except FileNotFoundError:
            logger.warning('Could not remove %s; no such file', path)
            return
        logger.debug('Removed %s', path)

    def _resolve(self, path: str) -> str:
        target = os.path.normpath(os.path.join(self.root, path))
        if not target.startswith(os.path.normpath(self.root) + os.sep):
            raise FileNotFoundError(path)
        return target

    def _path_for(self, metadata: FileMetadata) -> str:
        # Layout is {drafts|submissions}/{id}/{kind}_{timestamp}_{name}{ext}
        if metadata.submission_id is not None:
            owner = os.path.join('submissions', str(metadata.submission_id))
        elif metadata.draft_id is not None:
            owner = os.path.join('drafts', str(metadata.draft_id))
        else:
            owner = 'unattached'
        stem = os.path.splitext(secure_filename(metadata.original_name))[0]
        stamp = get_tzaware_utc_now().strftime('%Y%m%d%H%M%S%f')
        extension = ALLOWED_MIME_TYPES[metadata.mime_type]
        name = f'{metadata.kind.value}_{stamp}'
        if stem:
            name = f'{name}_{stem}'
        return os.path.join(owner, f'{name}{extension}')


def init_app(app: Flask) -> None:
    """Set default configuration parameters for an application instance."""
    app.config.setdefault('FILESTORE_ROOT', '/tmp/confsubmit/files')
    app.config.setdefault('MAX_UPLOAD_BYTES', MAX_FILE_SIZE)


def get_filestore() -> FileStore:
    """Get a file store configured for the current application."""
    config = current_app.config if has_app_context() else {}
    root = config.get('FILESTORE_ROOT')
    if not root:
        raise ConfigurationError('FILESTORE_ROOT is not set')
    return FileStore(root, int(config.get('MAX_UPLOAD_BYTES', MAX_FILE_SIZE)))
