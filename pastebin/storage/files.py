"""
File-backed content store: one file per paste under an upload directory.
"""
import logging
import os
import tempfile
from pathlib import Path
from typing import Iterator, Optional

from pastebin.errors import PasteConflict, PasteNotFound, StorageIOError
from pastebin.ids import is_valid_id
from pastebin.storage.base import ContentStore

logger = logging.getLogger(__name__)

_TMP_PREFIX = ".tmp-"


class FileContentStore(ContentStore):
    """
    Stores each paste as ``<upload_dir>/<paste_id>``.

    New content is written to a hidden temp file first and then published
    with a hard link, so a reader never observes a half-written paste and an
    existing ID is never overwritten. The file modification time stands in
    for the creation time when metadata is missing.
    """

    def __init__(self, upload_dir: str):
        self.upload_dir = Path(upload_dir)
        try:
            self.upload_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageIOError(f"Cannot create upload directory {upload_dir}: {e}") from e

    def _path(self, paste_id: str) -> Path:
        # IDs are validated by callers; refuse anything that could escape the directory
        if not is_valid_id(paste_id):
            raise PasteNotFound()
        return self.upload_dir / paste_id

    def put(self, paste_id: str, data: bytes) -> None:
        target = self._path(paste_id)
        fd, tmp_name = tempfile.mkstemp(prefix=_TMP_PREFIX, dir=self.upload_dir)
        try:
            with os.fdopen(fd, "wb") as tmp:
                tmp.write(data)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.link(tmp_name, target)
        except FileExistsError:
            raise PasteConflict(f"Paste {paste_id} already exists")
        except OSError as e:
            logger.error(f"Error writing paste {paste_id}: {e}")
            raise StorageIOError(f"Could not write paste {paste_id}") from e
        finally:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass

    def get(self, paste_id: str) -> bytes:
        try:
            return self._path(paste_id).read_bytes()
        except FileNotFoundError:
            raise PasteNotFound()
        except OSError as e:
            logger.error(f"Error reading paste {paste_id}: {e}")
            raise StorageIOError(f"Could not read paste {paste_id}") from e

    def delete(self, paste_id: str) -> bool:
        try:
            self._path(paste_id).unlink()
            return True
        except (FileNotFoundError, PasteNotFound):
            return False
        except OSError as e:
            logger.error(f"Error deleting paste {paste_id}: {e}")
            raise StorageIOError(f"Could not delete paste {paste_id}") from e

    def exists(self, paste_id: str) -> bool:
        return is_valid_id(paste_id) and self._path(paste_id).is_file()

    def list_ids(self) -> Iterator[str]:
        try:
            entries = os.scandir(self.upload_dir)
        except OSError as e:
            raise StorageIOError(f"Cannot list {self.upload_dir}: {e}") from e
        with entries:
            for entry in entries:
                # Skips temp files and anything else that is not a paste
                if is_valid_id(entry.name) and entry.is_file():
                    yield entry.name

    def modified_at(self, paste_id: str) -> Optional[float]:
        try:
            return self._path(paste_id).stat().st_mtime
        except (FileNotFoundError, PasteNotFound):
            return None
        except OSError as e:
            raise StorageIOError(f"Cannot stat paste {paste_id}: {e}") from e

    def purge_leftovers(self, older_than: float) -> int:
        """Delete temp files a crashed writer never cleaned up."""
        removed = 0
        try:
            entries = os.scandir(self.upload_dir)
        except OSError as e:
            raise StorageIOError(f"Cannot list {self.upload_dir}: {e}") from e
        with entries:
            for entry in entries:
                if not entry.name.startswith(_TMP_PREFIX):
                    continue
                try:
                    if entry.stat().st_mtime >= older_than:
                        continue
                    os.unlink(entry.path)
                    removed += 1
                except FileNotFoundError:
                    continue
                except OSError as e:
                    logger.error(f"Could not remove stale temp file {entry.name}: {e}")
        return removed

    def ping(self) -> bool:
        return self.upload_dir.is_dir() and os.access(self.upload_dir, os.W_OK)
