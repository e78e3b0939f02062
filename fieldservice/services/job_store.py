"""Job store -- revisioned in-memory job records with optional JSON snapshots.

The store is the single place where job records are written.  Every write is a
compare-and-swap on the job's ``revision``: the caller passes the revision it
validated against, and a mismatch raises ``ConcurrencyConflictError`` so two
requests racing from the same stale read can never both commit.

When a ``data_dir`` is configured each committed job is also dumped to
``<data_dir>/<job_id>.json`` and reloaded by ``load``.
"""

import logging
import os
import threading
from pathlib import Path

from fieldservice.errors import ConcurrencyConflictError, JobNotFoundError
from fieldservice.models import Job, JobStatus

logger = logging.getLogger(__name__)


class JobStore:
    """Thread-safe registry of the latest revision of every job.

    Attributes:
        data_dir: Directory for JSON snapshots, or ``None`` for memory only.
    """

    def __init__(self, data_dir: Path | None = None) -> None:
        """Initialise an empty store.

        Args:
            data_dir: Optional snapshot directory; created on first write.
        """
        self.data_dir = data_dir
        self._jobs: dict[str, Job] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._jobs)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, job_id: str) -> Job:
        """Return the latest revision of a job.

        Raises:
            JobNotFoundError: If no job with the given ID exists.
        """
        try:
            return self._jobs[job_id]
        except KeyError:
            raise JobNotFoundError(job_id) from None

    def query(self, status: JobStatus | None = None, technician_id: str | None = None) -> list[Job]:
        """Return jobs matching the filters, most recently created first."""
        with self._lock:
            jobs = list(self._jobs.values())
        if status is not None:
            jobs = [j for j in jobs if j.status == status]
        if technician_id is not None:
            jobs = [j for j in jobs if j.assigned_technician == technician_id]
        jobs.sort(key=lambda j: j.created_at, reverse=True)
        return jobs

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert(self, job: Job) -> Job:
        """Store a brand-new job at revision 1.

        Raises:
            ValueError: If a job with the same ID already exists.
        """
        with self._lock:
            if job.job_id in self._jobs:
                raise ValueError(f"Job {job.job_id!r} already exists")
            stored = job.model_copy(update={"revision": 1})
            self._snapshot(stored)
            self._jobs[job.job_id] = stored
        return stored

    def replace(self, job: Job, expected_revision: int) -> Job:
        """Commit a new version of an existing job.

        Args:
            job: The fully built new version.  Its ``revision`` is ignored.
            expected_revision: Revision of the snapshot the change was
                computed from.

        Returns:
            The stored job, with ``revision`` bumped by one.

        Raises:
            JobNotFoundError: If the job has been deleted.
            ConcurrencyConflictError: If another write landed first.
        """
        with self._lock:
            current = self._jobs.get(job.job_id)
            if current is None:
                raise JobNotFoundError(job.job_id)
            if current.revision != expected_revision:
                logger.warning(
                    "Conflicting write on job %s: expected revision %d, found %d",
                    job.job_id,
                    expected_revision,
                    current.revision,
                )
                raise ConcurrencyConflictError(job.job_id, expected_revision, current.revision)
            stored = job.model_copy(update={"revision": current.revision + 1})
            self._snapshot(stored)
            self._jobs[job.job_id] = stored
        return stored

    def delete(self, job_id: str) -> Job:
        """Remove a job and its snapshot.

        Raises:
            JobNotFoundError: If no job with the given ID exists.
        """
        with self._lock:
            job = self._jobs.pop(job_id, None)
        if job is None:
            raise JobNotFoundError(job_id)
        if self.data_dir is not None:
            (self.data_dir / f"{job_id}.json").unlink(missing_ok=True)
        return job

    # ------------------------------------------------------------------
    # Snapshot persistence
    # ------------------------------------------------------------------

    def _snapshot(self, job: Job) -> None:
        """Write ``<job_id>.json`` under ``data_dir`` when persistence is enabled.

        Runs before the in-memory commit, so a failed write leaves the store
        unchanged.  The file is written to a temporary sibling and moved into
        place, so readers never see a half-written snapshot.

        Raises:
            OSError: If the snapshot cannot be written.
        """
        if self.data_dir is None:
            return
        self.data_dir.mkdir(parents=True, exist_ok=True)
        path = self.data_dir / f"{job.job_id}.json"
        tmp_path = path.with_suffix(".json.tmp")
        try:
            tmp_path.write_text(job.model_dump_json(indent=2), encoding="utf-8")
            os.replace(tmp_path, path)
        except OSError:
            tmp_path.unlink(missing_ok=True)
            raise

    def load(self) -> int:
        """Reload every snapshot found in ``data_dir``.

        Returns:
            The number of jobs loaded.
        """
        if self.data_dir is None or not self.data_dir.is_dir():
            return 0
        loaded = 0
        with self._lock:
            for path in sorted(self.data_dir.glob("*.json")):
                job = Job.model_validate_json(path.read_text(encoding="utf-8"))
                self._jobs[job.job_id] = job
                loaded += 1
        logger.info("Loaded %d job snapshots from %s", loaded, self.data_dir)
        return loaded
