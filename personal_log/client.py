import logging
import mimetypes
import os

import requests

from .exceptions import ApiError
from .models import entries_from_json, entries_to_json

logger = logging.getLogger('personal_log.client')


class JournalClient:
    """HTTP access to a Personal Log server"""

    def __init__(self, server_url="http://localhost:5000", timeout=10, session=None):
        self.server_url = server_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()

    def _request(self, method, path, **kwargs):
        url = f"{self.server_url}{path}"
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise ApiError(f"Cannot reach {url}: {e}") from e

        if not response.ok:
            try:
                body = response.json()
            except ValueError:
                body = None
            message = body.get('error', response.reason) if isinstance(body, dict) else response.reason
            raise ApiError(f"{method} {path} failed ({response.status_code}): {message}",
                           status_code=response.status_code)
        return response

    def login(self, username, password):
        """Open a session on the server"""
        response = self._request('POST', '/api/auth/login',
                                 json={'username': username, 'password': password})
        return response.json()['user']

    def load_entries(self):
        """Fetch every entry"""
        response = self._request('GET', '/api/entries')
        try:
            return entries_from_json(response.json())
        except ValueError as e:
            raise ApiError(f"Server returned malformed entries: {e}") from e

    def save_entries(self, entries):
        """Replace the server's entry list with entries"""
        self._request('POST', '/api/entries', json=entries_to_json(entries))
        logger.info(f"Saved {len(entries)} entries")

    def upload_media(self, path):
        """Upload one file; returns the server's answer and the file's MIME type"""
        name = os.path.basename(path)
        mime_type = mimetypes.guess_type(name)[0] or 'application/octet-stream'
        try:
            with open(path, 'rb') as f:
                response = self._request('POST', '/api/media', files={'file': (name, f, mime_type)})
        except OSError as e:
            raise ApiError(f"Cannot read {path}: {e}") from e
        return response.json(), mime_type

