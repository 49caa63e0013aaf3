from datetime import date
from urllib.parse import urlparse

import pytest
import requests
from requests.structures import CaseInsensitiveDict

from personal_log.client import JournalClient
from personal_log.exceptions import ApiError
from personal_log.journal import Journal
from personal_log.models import MediaType

ABC_MD5 = "900150983cd24fb0d6963f7d28e17f72"


class FlaskSession:
    """requests.Session stand-in that sends requests to a Flask test client."""

    def __init__(self, flask_client):
        self.flask_client = flask_client

    def request(self, method, url, timeout=None, json=None, files=None):
        kwargs = {}
        if json is not None:
            kwargs["json"] = json
        if files:
            field, (filename, fileobj, mime_type) = next(iter(files.items()))
            kwargs["data"] = {field: (fileobj, filename, mime_type)}
            kwargs["content_type"] = "multipart/form-data"
        result = self.flask_client.open(urlparse(url).path, method=method, **kwargs)

        response = requests.Response()
        response.status_code = result.status_code
        response._content = result.data
        response.headers = CaseInsensitiveDict(dict(result.headers))
        response.reason = result.status.split(" ", 1)[-1]
        response.url = url
        return response


class DownSession:
    def request(self, method, url, **kwargs):
        raise requests.ConnectionError("connection refused")


@pytest.fixture
def api(client):
    return JournalClient("http://journal.test", session=FlaskSession(client))


def test_load_entries_from_fresh_server(api):
    assert api.load_entries() == []


def test_save_then_load(api, sample_entry):
    api.save_entries([sample_entry])

    assert api.load_entries() == [sample_entry]


def test_upload_media_returns_server_answer_and_mime(api, tmp_path):
    path = tmp_path / "hello.txt"
    path.write_bytes(b"abc")

    uploaded, mime_type = api.upload_media(str(path))

    assert uploaded == {"id": ABC_MD5, "name": "hello.txt", "url": f"/api/media/{ABC_MD5}.txt"}
    assert mime_type == "text/plain"


def test_upload_missing_file_raises(api, tmp_path):
    with pytest.raises(ApiError):
        api.upload_media(str(tmp_path / "nope.png"))


def test_login(api):
    user = api.login("writer", "s3cret")

    assert user["username"] == "writer"


def test_login_failure_carries_status(api):
    with pytest.raises(ApiError) as excinfo:
        api.login("writer", "wrong")

    assert excinfo.value.status_code == 401
    assert "Invalid credentials" in str(excinfo.value)


def test_server_error_surfaces(api, config):
    config.data_dir.mkdir(parents=True)
    config.entries_file.write_text("{oops", encoding="utf-8")

    with pytest.raises(ApiError) as excinfo:
        api.load_entries()

    assert excinfo.value.status_code == 500


def test_unreachable_server_raises():
    api = JournalClient("http://journal.test", session=DownSession())

    with pytest.raises(ApiError, match="Cannot reach"):
        api.load_entries()


def test_journal_persists_through_client(api, tmp_path):
    today = date(2024, 3, 1)
    journal = Journal(today=lambda: today, on_change=api.save_entries)
    photo = tmp_path / "cat.png"
    photo.write_bytes(b"\x89PNG fake")

    journal.start_editing()
    journal.set_title("Cat day")
    journal.add_text_block("Found a cat")
    journal.attach_media(*api.upload_media(str(photo)))
    journal.save()

    [entry] = api.load_entries()
    assert entry.title == "Cat day"
    assert entry.media[0].type is MediaType.IMAGE
    assert [d.type.value for d in entry.display_order] == ["text", "media"]


class ListErrorSession:
    """Answers every request with a 502 whose JSON body is not an object."""

    def request(self, method, url, **kwargs):
        response = requests.Response()
        response.status_code = 502
        response._content = b'["upstream down"]'
        response.headers = CaseInsensitiveDict({"Content-Type": "application/json"})
        response.reason = "Bad Gateway"
        response.url = url
        return response


def test_error_body_that_is_not_an_object_uses_reason():
    api = JournalClient("http://journal.test", session=ListErrorSession())

    with pytest.raises(ApiError) as excinfo:
        api.load_entries()

    assert excinfo.value.status_code == 502
    assert "Bad Gateway" in str(excinfo.value)
