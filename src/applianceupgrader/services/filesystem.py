"""Filesystem helpers for applianceupgrader."""

import logging
import os
import shutil
import tempfile
from typing import Optional

from rich.console import Console

from applianceupgrader.errors import UpgraderError


class FileSystemService:
    """Encapsulates file and directory side effects."""

    def __init__(self, logger: logging.Logger, console: Console):
        self.logger = logger
        self.console = console

    def write_text_atomic(self, path: str, content: str, mode: Optional[int] = None):
        """Replaces ``path`` with ``content`` without exposing a partial file."""
        directory = os.path.dirname(path) or "."
        try:
            os.makedirs(directory, exist_ok=True)
            if mode is None and os.path.exists(path):
                mode = os.stat(path).st_mode & 0o7777
            fd, temp_path = tempfile.mkstemp(prefix=".upgrade-", dir=directory)
        except OSError as exc:
            raise UpgraderError(f"Could not write '{path}': {exc}") from exc

        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as file_obj:
                file_obj.write(content)
            if mode is not None:
                os.chmod(temp_path, mode)
            os.replace(temp_path, path)
        except OSError as exc:
            raise UpgraderError(f"Could not write '{path}': {exc}") from exc
        finally:
            if os.path.exists(temp_path):
                try:
                    os.remove(temp_path)
                except OSError:
                    pass

    def read_text(self, path: str) -> str:
        try:
            with open(path, "r", encoding="utf-8") as file_obj:
                return file_obj.read()
        except OSError as exc:
            raise UpgraderError(f"Could not read '{path}': {exc}") from exc

    def copy_dir_contents(self, source: str, destination: str):
        try:
            shutil.copytree(source, destination, dirs_exist_ok=True)
        except (OSError, shutil.Error) as exc:
            raise UpgraderError(f"Failed to copy {source} to {destination}: {exc}") from exc

    def copy_file(self, source: str, destination_dir: str):
        try:
            shutil.copy2(source, destination_dir)
        except OSError as exc:
            raise UpgraderError(f"Failed to copy {source} to {destination_dir}: {exc}") from exc

    def remove_dir(self, path: str):
        try:
            shutil.rmtree(path)
            self.logger.debug("Removed directory: %s", path)
        except OSError as exc:
            raise UpgraderError(f"Could not remove {path}: {exc}") from exc

    def promote_dir(self, source: str, destination: str):
        try:
            shutil.move(source, destination)
            self.logger.debug("Moved %s to %s", source, destination)
        except (OSError, shutil.Error) as exc:
            raise UpgraderError(f"Could not move {source} to {destination}: {exc}") from exc
