# tool_exporter/export/packager.py
"""
Filesystem packager: working-directory lifecycle and archive creation.

Layout under exports_dir:
    work/<job_id>/                 private working directory of one job
    packages/<job_id>.tar.gz       finished package
    packages/<job_id>.tar.gz.partial
"""

import asyncio
import hashlib
import logging
import os
import shutil
import tarfile
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 1024 * 1024


@dataclass(frozen=True)
class PackageInfo:
    """A finished archive."""

    path: Path
    size_bytes: int
    checksum: str  # SHA-256 hex digest


def sha256_file(path: Path) -> str:
    digest = hashlib.sha256()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


class FilesystemPackager:
    """
    Creates, archives, and removes per-job working directories.

    All blocking filesystem work runs in worker threads via asyncio.to_thread.
    rollback() and cleanup() never raise: cleanup errors are logged so they
    cannot mask the failure that triggered them.
    """

    def __init__(self, exports_dir: Path | str) -> None:
        self._root = Path(exports_dir)
        self._work_root = self._root / "work"
        self._packages_root = self._root / "packages"
        logger.info(f"Created FilesystemPackager at {self._root}")

    @property
    def root(self) -> Path:
        return self._root

    def workdir_for(self, job_id: str) -> Path:
        return self._work_root / job_id

    def package_path_for(self, job_id: str) -> Path:
        return self._packages_root / f"{job_id}.tar.gz"

    def _partial_path_for(self, job_id: str) -> Path:
        return self._packages_root / f"{job_id}.tar.gz.partial"

    def _owns(self, workdir: Path) -> bool:
        return workdir.resolve().parent == self._work_root.resolve()

    async def create_workdir(self, job_id: str) -> Path:
        """
        Create the job's private working directory.

        Raises:
            FileExistsError: If the directory already exists (job ids are unique)
        """
        workdir = self.workdir_for(job_id)

        def _create() -> None:
            self._work_root.mkdir(parents=True, exist_ok=True)
            workdir.mkdir(exist_ok=False)

        await asyncio.to_thread(_create)
        logger.info(f"Created working directory {workdir}")
        return workdir

    async def finalize(self, workdir: Path, archive_root: str) -> PackageInfo:
        """
        Compress the working directory into packages/<job_id>.tar.gz.

        The archive is written to a .partial file and renamed into place, so
        the final path only ever holds a complete package.

        Args:
            workdir: Populated working directory (its name is the job id)
            archive_root: Top-level directory name inside the archive

        Returns:
            PackageInfo with path, size, and SHA-256 checksum
        """
        job_id = workdir.name
        partial = self._partial_path_for(job_id)
        final = self.package_path_for(job_id)

        def _build() -> PackageInfo:
            self._packages_root.mkdir(parents=True, exist_ok=True)
            try:
                with tarfile.open(partial, "w:gz") as tar:
                    tar.add(workdir, arcname=archive_root)
                checksum = sha256_file(partial)
                size = partial.stat().st_size
                os.replace(partial, final)
            except BaseException:
                partial.unlink(missing_ok=True)
                raise
            return PackageInfo(path=final, size_bytes=size, checksum=checksum)

        info = await asyncio.to_thread(_build)
        logger.info(f"Packaged {job_id}: {info.path} ({info.size_bytes} bytes)")
        return info

    async def verify_package(self, path: Path | str, expected_checksum: str | None) -> bool:
        """True if the archive exists and (when given) matches the checksum."""
        path = Path(path)
        if not path.is_file():
            return False
        if not expected_checksum:
            return True
        actual = await asyncio.to_thread(sha256_file, path)
        if actual != expected_checksum:
            logger.error(f"Checksum mismatch for {path}: expected {expected_checksum}, got {actual}")
            return False
        return True

    def _remove(self, path: Path) -> None:
        try:
            if path.is_dir() and not path.is_symlink():
                shutil.rmtree(path)
            elif path.exists() or path.is_symlink():
                path.unlink()
        except OSError as e:
            logger.warning(f"Cleanup failed for {path}: {e}")

    async def rollback(self, workdir: Path) -> None:
        """
        Remove the working directory and any partial or final archive for the job.

        Idempotent. Never raises.
        """
        job_id = workdir.name
        try:
            if not self._owns(workdir):
                logger.error(f"Refusing to roll back directory outside work root: {workdir}")
                return

            def _rollback() -> None:
                self._remove(workdir)
                self._remove(self._partial_path_for(job_id))
                self._remove(self.package_path_for(job_id))

            await asyncio.to_thread(_rollback)
            logger.info(f"Rolled back job {job_id}")
        except Exception as e:
            logger.warning(f"Rollback of job {job_id} did not complete: {e}")

    async def cleanup(self, workdir: Path) -> None:
        """Remove only the working directory after a successful finalize. Never raises."""
        try:
            if not self._owns(workdir):
                logger.error(f"Refusing to clean up directory outside work root: {workdir}")
                return
            await asyncio.to_thread(self._remove, workdir)
        except Exception as e:
            logger.warning(f"Cleanup of {workdir} did not complete: {e}")
