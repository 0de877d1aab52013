import os
import sys
from unittest.mock import MagicMock, patch

import pytest
import requests
from urllib3.connection import HTTPSConnection

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from showterm.config import DEFAULT_SERVER, UploadSettings
from showterm.errors import TlsPinMismatchError, UploadNetworkError, UploadRejectedError
from showterm.pinning import PinnedHTTPAdapter
from showterm.upload import UploadClient


def response(status_code, text):
    resp = MagicMock()
    resp.status_code = status_code
    resp.text = text
    return resp


@pytest.fixture
def settings():
    return UploadSettings(server_url="https://showterm.example.com")


@pytest.fixture
def session():
    return MagicMock(spec=requests.Session)


class TestUploadSettings:
    """Test configuration from the environment"""

    def test_default_server_is_pinned(self):
        settings = UploadSettings.from_env({})
        assert settings.server_url == DEFAULT_SERVER
        assert len(settings.pinned_keys) == 4
        assert settings.timeout == (10.0, 10.0)
        assert settings.scripts_url == "https://showterm.herokuapp.com/scripts"

    def test_override_disables_pinning(self):
        settings = UploadSettings.from_env({"SHOWTERM_SERVER": "http://localhost:3000/"})
        assert settings.server_url == "http://localhost:3000/"
        assert settings.pinned_keys is None
        assert settings.scripts_url == "http://localhost:3000/scripts"


class TestUploadClient:
    """Test the upload request and retry policy"""

    def test_upload_posts_form(self, settings, session):
        session.post.return_value = response(201, "https://showterm.example.com/7b20d\n")
        client = UploadClient(settings, session=session)

        body = client.upload(b"\x1b[1mhi\x1b[0m", "0.0 11\n", 120, 40)

        assert body == "https://showterm.example.com/7b20d\n"
        session.post.assert_called_once_with(
            "https://showterm.example.com/scripts",
            data={
                'scriptfile': b"\x1b[1mhi\x1b[0m",
                'timingfile': "0.0 11\n",
                'cols': "120",
                'lines': "40",
            },
            timeout=(10.0, 10.0),
        )

    def test_retries_once_after_network_error(self, settings, session):
        session.post.side_effect = [
            requests.exceptions.ConnectionError("connection reset"),
            response(200, "https://showterm.example.com/second"),
        ]
        client = UploadClient(settings, session=session)

        assert client.upload(b"x", "0.0 1\n", 80, 25) == "https://showterm.example.com/second"
        assert session.post.call_count == 2

    def test_retries_once_after_rejection(self, settings, session):
        session.post.side_effect = [
            response(503, "Application Error"),
            response(200, "https://showterm.example.com/ok"),
        ]
        client = UploadClient(settings, session=session)

        assert client.upload(b"x", "0.0 1\n", 80, 25) == "https://showterm.example.com/ok"
        assert session.post.call_count == 2

    def test_second_network_failure_surfaces(self, settings, session):
        session.post.side_effect = requests.exceptions.Timeout("read timed out")
        client = UploadClient(settings, session=session)

        with pytest.raises(UploadNetworkError) as excinfo:
            client.upload(b"x", "0.0 1\n", 80, 25)

        assert "read timed out" in str(excinfo.value)
        assert session.post.call_count == 2

    def test_second_rejection_surfaces_body(self, settings, session):
        session.post.return_value = response(422, "timingfile is invalid")
        client = UploadClient(settings, session=session)

        with pytest.raises(UploadRejectedError) as excinfo:
            client.upload(b"x", "garbage", 80, 25)

        assert excinfo.value.status_code == 422
        assert excinfo.value.body == "timingfile is invalid"
        assert str(excinfo.value) == "timingfile is invalid"
        assert session.post.call_count == 2

    def test_pin_mismatch_not_retried(self, settings, session):
        session.post.side_effect = TlsPinMismatchError("not pinned")
        client = UploadClient(settings, session=session)

        with pytest.raises(TlsPinMismatchError):
            client.upload(b"x", "0.0 1\n", 80, 25)
        assert session.post.call_count == 1


class TestClientSession:
    """Test transport setup for pinned and unpinned servers"""

    def test_default_server_mounts_pinned_adapter(self):
        client = UploadClient(UploadSettings.from_env({}))
        adapter = client.session.get_adapter(DEFAULT_SERVER + "/scripts")
        assert isinstance(adapter, PinnedHTTPAdapter)

    def test_override_uses_plain_adapter(self):
        client = UploadClient(UploadSettings.from_env({"SHOWTERM_SERVER": "https://showterm.example.com"}))
        adapter = client.session.get_adapter("https://showterm.example.com/scripts")
        assert not isinstance(adapter, PinnedHTTPAdapter)

    def test_unpinned_certificate_fails_upload(self, leaf):
        der, _ = leaf
        sock = MagicMock()
        sock.get_verified_chain.return_value = [der]

        def connect(self):
            # stands in for a handshake whose normal chain validation passed
            self.sock = sock

        client = UploadClient(UploadSettings.from_env({}))
        client.session.trust_env = False

        with patch.object(HTTPSConnection, 'connect', autospec=True, side_effect=connect) as mock_connect:
            with pytest.raises(TlsPinMismatchError):
                client.upload(b"x", "0.0 1\n", 80, 25)

        assert mock_connect.call_count == 1
        sock.sendall.assert_not_called()

    def test_unpinned_certificate_fails_upload_through_proxy(self, leaf, monkeypatch):
        for name in ("HTTPS_PROXY", "https_proxy"):
            monkeypatch.setenv(name, "http://proxy.example:3128")
        for name in ("NO_PROXY", "no_proxy"):
            monkeypatch.delenv(name, raising=False)

        sock = MagicMock()
        sock.get_verified_chain.return_value = [leaf[0]]

        def connect(self):
            self.sock = sock

        client = UploadClient(UploadSettings.from_env({}))

        with patch.object(HTTPSConnection, 'connect', autospec=True, side_effect=connect) as mock_connect:
            with pytest.raises(TlsPinMismatchError):
                client.upload(b"x", "0.0 1\n", 80, 25)

        assert mock_connect.call_count == 1
        sock.sendall.assert_not_called()
