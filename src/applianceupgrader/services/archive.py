"""Archive helpers for applianceupgrader."""

import os
import tarfile
import tempfile
from typing import Optional

from applianceupgrader.errors import UpgraderError


class ArchiveService:
    """Builds compressed archives of data directories before they are removed."""

    def create_tarball(self, source_dir: str, archive_path: str, arcname: Optional[str] = None) -> str:
        """Writes ``source_dir`` to ``archive_path`` as gzip tar.

        Entries are stored under ``arcname``, or the directory's own name when
        it is not given.
        """
        if not os.path.isdir(source_dir):
            raise UpgraderError(f"Cannot archive missing directory: {source_dir}")

        if arcname is None:
            arcname = os.path.basename(source_dir.rstrip(os.sep))
        directory = os.path.dirname(archive_path) or "."
        temp_path = None
        try:
            os.makedirs(directory, exist_ok=True)
            fd, temp_path = tempfile.mkstemp(prefix=".archive-", suffix=".tgz", dir=directory)
            os.close(fd)
            with tarfile.open(temp_path, "w:gz") as tar:
                tar.add(source_dir, arcname=arcname)
            os.replace(temp_path, archive_path)
        except (OSError, tarfile.TarError) as exc:
            raise UpgraderError(f"Failed to archive {source_dir} to {archive_path}: {exc}") from exc
        finally:
            if temp_path and os.path.exists(temp_path):
                try:
                    os.remove(temp_path)
                except OSError:
                    pass

        return archive_path
