"""Single-file HTTP fetcher."""

from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path

import httpx

from romprep.io.files import ensure_dir


logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 60.0


@dataclass(frozen=True)
class FetchResult:
    url: str
    dest: Path
    ok: bool
    status_code: int | None = None
    size: int = 0
    error: str | None = None


class FileFetcher:
    """Download one resource per call into a local path.

    The body is streamed into a temporary file next to the destination and
    moved into place only after a complete 2xx response, so a failed fetch
    never leaves a truncated file behind.
    """

    def __init__(
        self,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(
            follow_redirects=True,
            timeout=self._timeout,
            transport=self._transport,
        )

    def fetch(self, url: str, dest: Path) -> FetchResult:
        ensure_dir(dest.parent)
        fd, temp_name = tempfile.mkstemp(prefix=".fetch-", dir=str(dest.parent))
        size = 0
        try:
            with os.fdopen(fd, "wb") as handle, self._client() as client:
                with client.stream("GET", url) as response:
                    if not response.is_success:
                        return FetchResult(
                            url=url,
                            dest=dest,
                            ok=False,
                            status_code=response.status_code,
                            error=f"HTTP {response.status_code}",
                        )
                    for chunk in response.iter_bytes():
                        handle.write(chunk)
                        size += len(chunk)
                    status_code = response.status_code
            os.replace(temp_name, dest)
        except httpx.HTTPError as exc:
            return FetchResult(url=url, dest=dest, ok=False, error=f"{type(exc).__name__}: {exc}")
        except OSError as exc:
            return FetchResult(url=url, dest=dest, ok=False, error=str(exc))
        finally:
            if os.path.exists(temp_name):
                os.unlink(temp_name)
        logger.debug("fetched %s -> %s (%d bytes)", url, dest, size)
        return FetchResult(url=url, dest=dest, ok=True, status_code=status_code, size=size)

