"""File-backed status store."""

import os
from pathlib import Path
from urllib.parse import quote

from pydantic import ValidationError

from eksup.core.exceptions import StoreError
from eksup.core.models import UpgradeStatus
from eksup.interfaces.state_store import StatusStore
from eksup.utils.logging import get_logger

logger = get_logger(__name__)


class FileStatusStore(StatusStore):
    """Stores one JSON document per request under a directory.

    Request IDs are percent-encoded into file names, so distinct IDs never
    share a file. Writes go to a temporary file that is renamed over the
    target, so a crash mid-write leaves the previous status intact.
    """

    def __init__(self, directory: str | Path):
        self.directory = Path(directory).expanduser()

    def _path(self, request_id: str) -> Path:
        return self.directory / f"{quote(request_id, safe='')}.json"

    async def get(self, request_id: str) -> UpgradeStatus | None:
        path = self._path(request_id)
        if not path.exists():
            return None

        try:
            return UpgradeStatus.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, ValidationError) as e:
            logger.error("status_read_failed", request_id=request_id, path=str(path), error=str(e))
            raise StoreError(f"Failed to read status for {request_id}: {e}") from e

    async def patch(self, request_id: str, status: UpgradeStatus) -> None:
        path = self._path(request_id)
        tmp_path = path.with_suffix(".json.tmp")

        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(status.model_dump_json(indent=2), encoding="utf-8")
            os.replace(tmp_path, path)
        except OSError as e:
            logger.error("status_write_failed", request_id=request_id, path=str(path), error=str(e))
            raise StoreError(f"Failed to write status for {request_id}: {e}") from e

        logger.debug("status_patched", request_id=request_id, phase=status.phase.value)

    async def delete(self, request_id: str) -> bool:
        path = self._path(request_id)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StoreError(f"Failed to delete status for {request_id}: {e}") from e
        return True
