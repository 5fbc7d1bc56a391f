"""Input/Output operations for flatpak-bundler.

Modules:

download : module
    HTTP(S) download of remote reference descriptors with retries.

Public API:

download_file : function
    Download a file from a URL into a folder, atomically.

Example:
    from pathlib import Path
    from flatpakbundler.io import download_file

    file_path, sha256 = download_file(
        url="https://example.com/runtime.flatpakref",
        destination_folder=Path("./refs"),
    )

"""

from .download import download_file, make_session

__all__ = ["download_file", "make_session"]
