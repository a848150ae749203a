"""Document loader over an extracted companyfacts bulk directory.

The nightly ``companyfacts.zip`` archive unpacks to one
``CIK##########.json`` file per filer.  Downloading and unpacking it is
done outside this package; the loader only reads what is already there.
"""

from __future__ import annotations

import logging
from pathlib import Path

log = logging.getLogger(__name__)


def cik_filename(cik: int | str) -> str:
    """``320193`` → ``CIK0000320193.json``."""
    return f"CIK{str(int(cik)).zfill(10)}.json"


class FileDocumentLoader:
    """Callable loader: ``loader(cik)`` → raw document bytes, or None if absent.

    Only a missing file means "no document".  Any other OS error
    (permissions, I/O) propagates so the pipeline counts it as a failure.
    """

    def __init__(self, data_dir: str | Path):
        self.data_dir = Path(data_dir)

    def path_for(self, cik: int | str) -> Path:
        return self.data_dir / cik_filename(cik)

    def check(self) -> None:
        """Raise FileNotFoundError when the bulk directory is missing."""
        if not self.data_dir.is_dir():
            raise FileNotFoundError(
                f"companyfacts directory not found: {self.data_dir}"
            )

    def __call__(self, cik: int | str) -> bytes | None:
        path = self.path_for(cik)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            log.debug("No companyfacts document for CIK %s", cik)
            return None
