"""
Upload configuration for showterm
Built once from the environment and handed to the uploader
"""
import os
from typing import FrozenSet, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from showterm.pinning import load_pinned_keys

DEFAULT_SERVER = "https://showterm.herokuapp.com"


class UploadSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    server_url: str = DEFAULT_SERVER
    pinned_keys: Optional[FrozenSet[bytes]] = None
    connect_timeout: float = 10.0
    read_timeout: float = 10.0
    max_attempts: int = Field(default=2, ge=1)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] = os.environ) -> "UploadSettings":
        """Use SHOWTERM_SERVER if set, otherwise the pinned default server"""
        server = environ.get('SHOWTERM_SERVER')
        if server:
            return cls(server_url=server)
        return cls(server_url=DEFAULT_SERVER, pinned_keys=load_pinned_keys())

    @property
    def scripts_url(self) -> str:
        return f"{self.server_url.rstrip('/')}/scripts"

    @property
    def timeout(self):
        return (self.connect_timeout, self.read_timeout)
