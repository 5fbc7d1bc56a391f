"""
Reference descriptor download for flatpak-bundler.

Runtime, sdk and base-app descriptors (``.flatpakref`` files) may be given as
http(s) URLs. They are fetched once per run into the working directory so
that the install step reads a local, already-validated file.

Key Features:

- **Retry Logic with Exponential Backoff** - Retries transient failures
  (429, 500, 502, 503, 504) via urllib3.util.Retry.
- **Atomic Writes** - Downloads to ``<name>.part`` and renames on success.
- **Integrity Digest** - SHA-256 computed while streaming, logged for
  provenance.

Constants:

- DEFAULT_CHUNK (int): Stream chunk size (64 KiB). Descriptors are tiny.

Example:

    >>> from pathlib import Path
    >>> from flatpakbundler.io import download_file
    >>> path, sha256 = download_file(
    ...     url="https://example.com/org.freedesktop.Platform.flatpakref",
    ...     destination_folder=Path("work/refs"),
    ... )

Notes:
- All HTTP errors are chained as NetworkError
- Timeouts are per-request, not total download time
"""

from __future__ import annotations

import hashlib
from pathlib import Path
from urllib.parse import urlparse

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from flatpakbundler import __version__
from flatpakbundler.exceptions import NetworkError

DEFAULT_CHUNK = 64 * 1024


def _filename_from_url(url: str) -> str:
    """
    Derive a filename from the URL path. Fallback to a generic name if empty.
    """
    name = Path(urlparse(url).path).name
    return name or "download.flatpakref"


def make_session() -> requests.Session:
    """
    Create a requests.Session with retry/backoff defaults.

    - Retries on common transient status codes.
    - Applies exponential backoff.
    - Sets a User-Agent identifying the bundler.
    """
    s = requests.Session()
    retries = Retry(
        total=5,
        backoff_factor=0.5,
        status_forcelist=(429, 500, 502, 503, 504),
        allowed_methods=("GET", "HEAD"),
        raise_on_status=False,
    )
    s.headers.update({"User-Agent": f"flatpak-bundler/{__version__}"})
    s.mount("http://", HTTPAdapter(max_retries=retries))
    s.mount("https://", HTTPAdapter(max_retries=retries))
    return s


def download_file(
    url: str,
    destination_folder: Path,
    *,
    timeout: int = 60,
) -> tuple[Path, str]:
    """Download a URL into destination_folder.

    Follows redirects and retries transient failures. Writes to
    ``<filename>.part`` then renames to ``<filename>`` on success.

    Args:
        url: Source URL.
        destination_folder: Folder to save into (created if missing).
        timeout: Per-request timeout (seconds).

    Returns:
        A tuple (file_path, sha256_hex).

    Raises:
        NetworkError: On connection failures or non-2xx responses (after
            retries).
    """
    from flatpakbundler.logging import get_global_logger

    logger = get_global_logger()
    destination_folder = Path(destination_folder)
    destination_folder.mkdir(parents=True, exist_ok=True)

    logger.verbose("HTTP", f"GET {url}")

    with make_session() as session:
        try:
            resp = session.get(url, stream=True, allow_redirects=True, timeout=timeout)
            resp.raise_for_status()
        except requests.RequestException as err:
            raise NetworkError(f"download failed for {url}: {err}") from err

        logger.verbose("HTTP", f"Response: {resp.status_code} {resp.reason}")

        target = destination_folder / _filename_from_url(resp.url or url)
        tmp = target.with_suffix(target.suffix + ".part")

        sha = hashlib.sha256()
        try:
            with tmp.open("wb") as f:
                for chunk in resp.iter_content(chunk_size=DEFAULT_CHUNK):
                    if not chunk:
                        continue
                    f.write(chunk)
                    sha.update(chunk)
        except requests.RequestException as err:
            tmp.unlink(missing_ok=True)
            raise NetworkError(f"download failed for {url}: {err}") from err
        finally:
            resp.close()

    digest = sha.hexdigest()
    tmp.replace(target)
    logger.verbose("FILE", f"Downloaded {target} (SHA-256: {digest})")

    return target, digest
