import hashlib
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path

from werkzeug.security import safe_join

from .entry_store import atomic_write
from .exceptions import MediaNotFoundError, MediaStoreError

logger = logging.getLogger('personal_log.media')

DEFAULT_CONTENT_TYPE = 'application/octet-stream'

CONTENT_TYPES = {
    '.jpg': 'image/jpeg',
    '.jpeg': 'image/jpeg',
    '.png': 'image/png',
    '.gif': 'image/gif',
    '.mp4': 'video/mp4',
    '.mp3': 'audio/mpeg',
    '.webm': 'video/webm',
    '.wav': 'audio/wav',
    '.ogg': 'audio/ogg',
    '.svg': 'image/svg+xml',
}

_SAFE_EXT = re.compile(r'^\.[A-Za-z0-9]+$')


def content_type_for(filename):
    ext = os.path.splitext(filename)[1].lower()
    return CONTENT_TYPES.get(ext, DEFAULT_CONTENT_TYPE)


def extension_of(name):
    """Extension of a client supplied filename, or '' if it is not a plain suffix."""
    ext = os.path.splitext(os.path.basename(name or ''))[1]
    return ext if _SAFE_EXT.match(ext) else ''


def content_hash(data):
    return hashlib.md5(data).hexdigest()


@dataclass(frozen=True)
class StoredMedia:
    id: str
    name: str
    filename: str
    url: str

    def to_dict(self):
        return {'id': self.id, 'name': self.name, 'url': self.url}


class MediaStore:
    """Content-addressed blobs named <md5><ext> in one directory.

    Identical bytes always land on the same path. Nothing is ever deleted;
    blobs no entry refers to any more simply stay on disk.
    """

    def __init__(self, directory, url_prefix='/api/media'):
        self.directory = Path(directory)
        self.url_prefix = url_prefix.rstrip('/')

    def ensure_media_dir(self):
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise MediaStoreError(f"Cannot create {self.directory}: {e}") from e

    def url_for(self, filename):
        return f"{self.url_prefix}/{filename}"

    def put(self, data, original_name):
        """Store data and return its id, original name and retrieval url"""
        self.ensure_media_dir()
        file_hash = content_hash(data)
        filename = file_hash + extension_of(original_name)
        try:
            atomic_write(self.directory / filename, data, mode='wb')
        except OSError as e:
            raise MediaStoreError(f"Error writing {filename}: {e}") from e
        logger.info(f"Stored {original_name!r} as {filename} ({len(data)} bytes)")
        return StoredMedia(id=file_hash, name=original_name, filename=filename, url=self.url_for(filename))

    def path_for(self, filename):
        joined = safe_join(str(self.directory), filename)
        if joined is None:
            raise MediaNotFoundError(filename)
        return Path(joined)

    def get(self, filename):
        """Return (bytes, content type) for a stored filename"""
        path = self.path_for(filename)
        if not path.is_file():
            raise MediaNotFoundError(filename)
        try:
            with open(path, 'rb') as f:
                data = f.read()
        except FileNotFoundError:
            raise MediaNotFoundError(filename)
        except OSError as e:
            raise MediaStoreError(f"Error reading {filename}: {e}") from e
        return data, content_type_for(filename)

