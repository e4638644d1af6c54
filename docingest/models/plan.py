"""Processing-plan entries and the temp-file leases they own.

These are plain dataclasses rather than Pydantic models: a lease is a live
resource handle, never serialised.
"""

from __future__ import annotations

import shutil
from dataclasses import dataclass, field
from pathlib import Path

from docingest.models.ingestion import IngestionSource


class TransientLease:
    """Owns a temporary local copy of a remote file.

    ``path`` may be a single file or a private directory holding the
    download.  :meth:`release` removes it exactly once; later calls are
    no-ops.  A path that is already gone counts as released.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._released = False

    @property
    def path(self) -> Path:
        return self._path

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        """Delete the leased path.

        Raises
        ------
        OSError
            If the path exists but could not be removed.  The lease is
            still marked released so it is never retried.
        """
        if self._released:
            return
        self._released = True
        if self._path.is_dir():
            shutil.rmtree(self._path)
        else:
            self._path.unlink(missing_ok=True)

    def __enter__(self) -> TransientLease:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()

    def __repr__(self) -> str:
        return f"TransientLease({str(self._path)!r}, released={self._released})"


@dataclass(frozen=True)
class PlanEntry:
    """A uniformly-shaped unit of work for the ingestion orchestrator.

    Attributes
    ----------
    local_path:
        Readable local copy handed to the content processor.
    identity_path:
        Stable dedup key across re-ingestion (filesystem path or cloud URI).
    provenance:
        Origin tag stamped onto every chunk.
    lease:
        Owner of the temporary download, ``None`` for local files.
    """

    local_path: str
    identity_path: str
    provenance: IngestionSource = IngestionSource.LOCAL
    lease: TransientLease | None = field(default=None, compare=False)
