"""
Upload of recorded sessions to a showterm server
"""
import logging
from typing import Optional, Union

import requests

from showterm.config import UploadSettings
from showterm.errors import UploadError, UploadNetworkError, UploadRejectedError
from showterm.pinning import PinnedHTTPAdapter

logger = logging.getLogger("showterm.upload")


class UploadClient:
    """
    POSTs a scriptfile/timingfile pair to <server>/scripts

    Any network error or non-2xx answer is retried once. TLS pin mismatches
    are never retried.
    """

    def __init__(self, settings: UploadSettings, session: Optional[requests.Session] = None):
        self.settings = settings
        self.session = session or self._build_session()

    def _build_session(self) -> requests.Session:
        session = requests.Session()
        if self.settings.pinned_keys and self.settings.server_url.lower().startswith('https'):
            session.mount(self.settings.server_url, PinnedHTTPAdapter(self.settings.pinned_keys))
        return session

    def upload(self, scriptfile: Union[bytes, str], timingfile: str,
               cols: int, lines: int) -> str:
        """Upload the session and return the response body (the URL of the recording)"""
        url = self.settings.scripts_url
        form = {
            'scriptfile': scriptfile,
            'timingfile': timingfile,
            'cols': str(cols),
            'lines': str(lines),
        }

        error: Optional[UploadError] = None
        for attempt in range(1, self.settings.max_attempts + 1):
            try:
                response = self.session.post(url, data=form, timeout=self.settings.timeout)
            except requests.exceptions.RequestException as e:
                error = UploadNetworkError(f"Could not connect to {self.settings.server_url}: {e}")
            else:
                if 200 <= response.status_code < 300:
                    logger.info(f"Uploaded to {url} (attempt {attempt})")
                    return response.text
                error = UploadRejectedError(response.status_code, response.text)

            logger.warning(f"Upload attempt {attempt}/{self.settings.max_attempts} failed: {error}")

        raise error
