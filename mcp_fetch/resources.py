"""On-disk catalogue of saved images, exposed to clients as resources."""

from __future__ import annotations

import datetime as dt
import logging
from pathlib import Path
from typing import Callable, Dict, List, Optional

from .errors import PersistenceFailed
from .models import ImageResource
from .utils import safe_filename_stem, safe_hostname

logger = logging.getLogger("mcp_fetch")

IMAGE_MIME_TYPE = "image/jpeg"
SUBDIRECTORIES = ("individual", "merged")

ResourceListener = Callable[[ImageResource], None]


class ResourceStore:
    """Saves images under ``<base>/<YYYY-MM-DD>/{individual,merged}/`` and tracks them.

    Listeners registered with :meth:`subscribe` are called once per new resource.
    """

    def __init__(self, base_dir: Path, clock: Optional[Callable[[], dt.datetime]] = None) -> None:
        self.base_dir = Path(base_dir)
        self._clock = clock or dt.datetime.now
        self._resources: Dict[str, ImageResource] = {}
        self._listeners: List[ResourceListener] = []

    def subscribe(self, listener: ResourceListener) -> None:
        self._listeners.append(listener)

    def list(self) -> List[ImageResource]:
        return list(self._resources.values())

    def get(self, uri: str) -> Optional[ImageResource]:
        return self._resources.get(uri)

    def read(self, uri: str) -> bytes:
        resource = self._resources.get(uri)
        if resource is None:
            raise KeyError(f"Resource not found: {uri}")
        return resource.file_path.read_bytes()

    def __len__(self) -> int:
        return len(self._resources)

    def register(self, resource: ImageResource) -> None:
        self._resources[resource.uri] = resource
        for listener in self._listeners:
            try:
                listener(resource)
            except Exception as exc:  # noqa: BLE001 - listeners must not break saves
                logger.warning("Resource listener failed for %s: %s", resource.uri, exc)

    def _write(self, directory: Path, filename: str, data: bytes) -> Path:
        path = directory / filename
        try:
            directory.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as exc:
            raise PersistenceFailed(f"Failed to write image {path}: {exc}") from exc
        return path

    def save_composite(self, data: bytes, source_url: str, index: int = 0) -> Path:
        """Persist a merged image as ``<host>_<HH-MM-SS>_<index>.jpg``."""
        now = self._clock()
        date_str = now.strftime("%Y-%m-%d")
        filename = f"{safe_hostname(source_url)}_{now.strftime('%H-%M-%S')}_{index}.jpg"
        path = self._write(self.base_dir / date_str / "merged", filename, data)
        self.register(
            ImageResource(
                uri=path.resolve().as_uri(),
                name=f"{date_str}/merged/{filename}",
                description=f"Merged image from {source_url} saved on {date_str}",
                mime_type=IMAGE_MIME_TYPE,
                file_path=path.resolve(),
            )
        )
        logger.info("Image saved to %s", path)
        return path

    def save_individual(
        self,
        data: bytes,
        source_url: str,
        index: int,
        alt_text: str = "",
        original_filename: str = "image.jpg",
    ) -> Path:
        """Persist one downloaded image as ``<HH-MM-SS>_<index>_<name>.jpg``."""
        now = self._clock()
        date_str = now.strftime("%Y-%m-%d")
        stem = safe_filename_stem(original_filename)
        filename = f"{now.strftime('%H-%M-%S')}_{index}_{stem}.jpg"
        path = self._write(self.base_dir / date_str / "individual", filename, data)
        description = original_filename
        if alt_text:
            description += f" ({alt_text})"
        self.register(
            ImageResource(
                uri=path.resolve().as_uri(),
                name=f"{stem}_{index}",
                description=f"{description} from {source_url}",
                mime_type=IMAGE_MIME_TYPE,
                file_path=path.resolve(),
            )
        )
        return path

    def scan_existing(self) -> int:
        """Register JPEGs saved by earlier runs; returns how many were found."""
        if not self.base_dir.is_dir():
            return 0
        found = 0
        for date_dir in sorted(self.base_dir.iterdir()):
            if date_dir.name.startswith(".") or not date_dir.is_dir():
                continue
            found += self._scan_directory(date_dir, date_dir.name, None)
            for sub_dir in SUBDIRECTORIES:
                found += self._scan_directory(
                    date_dir / sub_dir, f"{date_dir.name}/{sub_dir}", sub_dir
                )
        logger.info("Registered %d existing image resources", found)
        return found

    def _scan_directory(self, directory: Path, prefix: str, kind: Optional[str]) -> int:
        if not directory.is_dir():
            return 0
        found = 0
        try:
            entries = sorted(directory.iterdir())
        except OSError as exc:
            logger.warning("Failed to scan directory %s: %s", directory, exc)
            return 0
        for path in entries:
            if not path.is_file() or path.suffix.lower() != ".jpg":
                continue
            file_kind = kind or ("individual" if "individual" in path.name else "merged")
            label = "Individual" if file_kind == "individual" else "Merged"
            self.register(
                ImageResource(
                    uri=path.resolve().as_uri(),
                    name=f"{prefix}/{path.stem}",
                    description=f"{label} image from {prefix.split('/')[0]}",
                    mime_type=IMAGE_MIME_TYPE,
                    file_path=path.resolve(),
                )
            )
            found += 1
        return found
