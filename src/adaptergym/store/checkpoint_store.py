"""Named checkpoint and adapter storage with atomic replacement."""

import os
import shutil
import uuid
from pathlib import Path
from typing import Callable

from adaptergym.core.errors import StorageFailure


class CheckpointStore:
    """Path-addressed store for adapter and trainer snapshots.

    Blobs are stored at: {base_path}/{name}
    Every write lands in a temp file inside base_path first and is then
    renamed over the destination, so a reader never sees a partial file.
    Concurrent experiments must use disjoint base paths.
    """

    def __init__(self, base_path: str | Path = "checkpoints"):
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)

    def path(self, name: str) -> Path:
        """Get path for a stored blob by name."""
        return self.base_path / name

    def exists(self, name: str) -> bool:
        return self.path(name).is_file()

    def _temp_path(self, name: str) -> Path:
        return self.base_path / f".{name}.{uuid.uuid4().hex[:8]}.tmp"

    def save(self, write_fn: Callable[[Path], None], name: str) -> Path:
        """Persist a snapshot under name.

        Args:
            write_fn: Writes the snapshot to the path it is given
            name: Destination name inside the store

        Returns:
            Final path of the stored blob

        Raises:
            StorageFailure: If write_fn raises or renaming fails
        """
        tmp = self._temp_path(name)
        try:
            write_fn(tmp)
            if not tmp.exists():
                raise StorageFailure(f"Writer produced no file for {name}")
            os.replace(tmp, self.path(name))
        except StorageFailure:
            raise
        except Exception as e:
            # Writers such as torch.save report I/O errors as RuntimeError
            raise StorageFailure(f"Cannot save {name}: {e}") from e
        finally:
            if tmp.exists():
                tmp.unlink()
        return self.path(name)

    def promote(self, source_name: str, destination_name: str) -> Path:
        """Copy source over destination atomically (overwrite allowed)."""
        source = self.path(source_name)
        tmp = self._temp_path(destination_name)
        try:
            shutil.copyfile(source, tmp)
            os.replace(tmp, self.path(destination_name))
        except OSError as e:
            raise StorageFailure(f"Cannot promote {source_name} to {destination_name}: {e}") from e
        finally:
            if tmp.exists():
                tmp.unlink()
        return self.path(destination_name)

    def delete(self, name: str) -> bool:
        """Delete a stored blob."""
        path = self.path(name)
        if path.exists():
            path.unlink()
            return True
        return False

    def list_names(self) -> list[str]:
        """List stored blob names (temp files excluded)."""
        return sorted(
            p.name for p in self.base_path.iterdir()
            if p.is_file() and not p.name.startswith(".")
        )
