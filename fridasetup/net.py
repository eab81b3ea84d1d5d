"""HTTP downloads."""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

import requests

from fridasetup.exceptions import DownloadError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 256


class Downloader:
    """Streams a URL to a local file."""

    def __init__(self, timeout: float = 60.0, session: Optional[requests.Session] = None):
        self.timeout = timeout
        self.session = session or requests.Session()

    def fetch(self, url: str, dest: Path) -> Path:
        """
        Download ``url`` to ``dest``.

        The body is written to a temporary file next to ``dest`` and moved
        into place only once complete, so ``dest`` never holds a partial file.

        Raises:
            DownloadError: On any HTTP or filesystem failure.
        """
        dest.parent.mkdir(parents=True, exist_ok=True)
        logger.info("Downloading from: %s", url)

        fd, tmp_name = tempfile.mkstemp(suffix=".part", dir=str(dest.parent))
        os.close(fd)
        try:
            with self.session.get(url, stream=True, timeout=self.timeout) as resp:
                resp.raise_for_status()
                with open(tmp_name, "wb") as f:
                    for chunk in resp.iter_content(chunk_size=CHUNK_SIZE):
                        if chunk:
                            f.write(chunk)
            os.replace(tmp_name, dest)
        except (requests.RequestException, OSError) as e:
            raise DownloadError(url, cause=e) from e
        finally:
            if os.path.exists(tmp_name):
                os.remove(tmp_name)

        return dest
