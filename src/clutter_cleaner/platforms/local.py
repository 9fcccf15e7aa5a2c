"""Photo library backed by a local directory tree."""

import io
import json
import logging
import os
import shutil
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from PIL import Image, UnidentifiedImageError
from send2trash import send2trash
from tqdm import tqdm

from clutter_cleaner.core.errors import DeletionError, FetchError
from clutter_cleaner.core.models import AccessLevel, Asset, FetchTier
from clutter_cleaner.platforms.base import AssetSource
from clutter_cleaner.utils.config import Config

logger = logging.getLogger(__name__)


class LocalPhotoLibrary(AssetSource):
    """Treats every image file under a directory as a library asset."""

    name = "local"

    # Supported image extensions
    IMAGE_EXTENSIONS = {
        ".jpg",
        ".jpeg",
        ".png",
        ".gif",
        ".bmp",
        ".webp",
        ".heic",
        ".heif",
        ".tiff",
        ".tif",
    }

    PREVIEW_QUALITY = 80

    def __init__(
        self,
        root: Path,
        config: Config,
        skip_hidden: bool = True,
        show_progress: bool = False,
    ):
        """
        Initialize the local library.

        Args:
            root: Directory holding the photos
            config: Configuration instance (staging dir, recycle bin, preview size)
            skip_hidden: Skip hidden files and folders
            show_progress: Show a progress bar while listing
        """
        self.root = Path(root)
        self.config = config
        self.skip_hidden = skip_hidden
        self.show_progress = show_progress
        self.staging_dir = config.get_staging_dir()
        self.operations_log = config.get_operations_log()
        self.thumbnail_size = int(config.get("fetch.thumbnail_size", 256))

    def request_access(self) -> AccessLevel:
        """
        Check filesystem permissions on the library root.

        Returns:
            DENIED if the root is missing or unreadable, LIMITED if it is
            read-only, AUTHORIZED otherwise
        """
        if not self.root.is_dir():
            logger.error(f"Library directory not found: {self.root}")
            return AccessLevel.DENIED

        if not os.access(self.root, os.R_OK | os.X_OK):
            logger.error(f"Library directory is not readable: {self.root}")
            return AccessLevel.DENIED

        if not os.access(self.root, os.W_OK):
            logger.warning(f"Library directory is read-only: {self.root}")
            return AccessLevel.LIMITED

        return AccessLevel.AUTHORIZED

    def list_assets(self) -> List[Asset]:
        """
        List image files under the root, newest first.

        Returns:
            Assets whose ids are POSIX paths relative to the root
        """
        logger.info(f"Scanning directory: {self.root}")

        all_files = self._discover_files(self.root)
        logger.info(f"Found {len(all_files)} files to check")

        if self.show_progress:
            file_iter = tqdm(all_files, desc="Listing photos", unit="file")
        else:
            file_iter = all_files

        assets: List[Asset] = []
        for file_path in file_iter:
            if not self._is_image_file(file_path):
                continue
            try:
                stat = file_path.stat()
            except OSError as e:
                logger.warning(f"Cannot stat {file_path}: {e}")
                continue

            created_ts = getattr(stat, "st_birthtime", None) or stat.st_mtime
            assets.append(
                Asset(
                    id=file_path.relative_to(self.root).as_posix(),
                    created=datetime.fromtimestamp(created_ts),
                    name=file_path.name,
                    size=stat.st_size,
                )
            )

        # Newest first, ties broken by id for a stable listing
        assets.sort(key=lambda a: a.id)
        assets.sort(key=lambda a: a.created, reverse=True)

        logger.info(f"Found {len(assets)} image files")
        return assets

    def fetch_content(
        self, asset: Asset, tier: FetchTier, allow_network: bool
    ) -> Optional[bytes]:
        """
        Read an asset's bytes.

        ``allow_network`` has no effect on local files.

        Returns:
            Raw file bytes for the original tier, a re-encoded JPEG thumbnail
            for the fast tier, or None when the image cannot be decoded
        """
        path = self._resolve(asset.id)

        if tier is FetchTier.ORIGINAL:
            try:
                return path.read_bytes()
            except OSError as e:
                raise FetchError(asset.id, str(e)) from e

        return self._render_preview(asset.id, path)

    def delete_assets(self, asset_ids: Sequence[str]) -> None:
        """
        Delete assets all-or-nothing.

        Every file is first moved into a staging directory. If any move fails
        the moves already made are undone and nothing is deleted. Once all
        files are staged they go to the recycle bin (or are unlinked).

        Raises:
            DeletionError: If any file cannot be staged
        """
        paths: List[Path] = []
        for asset_id in dict.fromkeys(asset_ids):
            try:
                path = self._resolve(asset_id)
            except FetchError as e:
                raise DeletionError(f"Failed to delete photos: {e.reason}") from e
            if not path.is_file():
                raise DeletionError(f"Failed to delete photos: {asset_id} not found")
            paths.append(path)

        if not paths:
            return

        operation_id = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
        operation_dir = self.staging_dir / operation_id
        operation_dir.mkdir(parents=True, exist_ok=True)

        staged: List[Tuple[Path, Path]] = []
        logger.info(f"Staging {len(paths)} files for deletion")

        try:
            for path in paths:
                staged_path = self._unique_staged_path(operation_dir, path)
                shutil.move(str(path), str(staged_path))
                staged.append((path, staged_path))
                logger.debug(f"Staged: {path} -> {staged_path}")
        except OSError as e:
            logger.error(f"Failed to stage {path}: {e}")
            self._rollback(staged)
            self._remove_if_empty(operation_dir)
            raise DeletionError(f"Failed to delete photos: {e}") from e

        use_recycle_bin = bool(self.config.get("deletion.use_recycle_bin", True))
        deleted = 0
        for original_path, staged_path in staged:
            try:
                if use_recycle_bin:
                    send2trash(str(staged_path))
                    logger.debug(f"Moved to recycle bin: {original_path}")
                else:
                    staged_path.unlink()
                    logger.debug(f"Permanently deleted: {original_path}")
                deleted += 1
            except Exception as e:
                # Already out of the library; the staged copy stays for manual recovery
                logger.error(f"Failed to discard staged file {staged_path}: {e}")

        self._remove_if_empty(operation_dir)
        self._log_operation(
            {
                "timestamp": datetime.now().isoformat(),
                "operation_id": operation_id,
                "root": str(self.root),
                "files": list(dict.fromkeys(asset_ids)),
                "files_deleted": deleted,
                "used_recycle_bin": use_recycle_bin,
            }
        )

        logger.info(
            f"Deleted {deleted}/{len(staged)} files "
            f"({'recycle bin' if use_recycle_bin else 'permanent'})"
        )

    def _discover_files(self, directory: Path) -> List[Path]:
        """
        Discover all regular files below a directory.

        Hidden entries are skipped when requested, symlinks always, and the
        staging directory is never descended into.
        """
        files: List[Path] = []
        staging = self.staging_dir.resolve() if self.staging_dir.exists() else None

        try:
            for root, dirs, filenames in os.walk(directory):
                root_path = Path(root)

                if self.skip_hidden:
                    dirs[:] = [d for d in dirs if not d.startswith(".")]

                # Skip symlinks to avoid loops
                dirs[:] = [d for d in dirs if not (root_path / d).is_symlink()]

                if staging is not None:
                    dirs[:] = [
                        d for d in dirs if (root_path / d).resolve() != staging
                    ]

                for filename in filenames:
                    if self.skip_hidden and filename.startswith("."):
                        continue

                    file_path = root_path / filename
                    if file_path.is_symlink():
                        continue

                    files.append(file_path)

        except PermissionError as e:
            logger.warning(f"Permission denied accessing directory: {e}")

        return files

    def _is_image_file(self, file_path: Path) -> bool:
        return file_path.suffix.lower() in self.IMAGE_EXTENSIONS

    def _resolve(self, asset_id: str) -> Path:
        root = self.root.resolve()
        path = (root / asset_id).resolve()
        if path != root and root not in path.parents:
            raise FetchError(asset_id, "path escapes the library root")
        return path

    def _render_preview(self, asset_id: str, path: Path) -> Optional[bytes]:
        try:
            with Image.open(path) as img:
                img.thumbnail((self.thumbnail_size, self.thumbnail_size))
                preview = img.convert("RGB")
                buffer = io.BytesIO()
                preview.save(buffer, "JPEG", quality=self.PREVIEW_QUALITY)
                return buffer.getvalue()
        except FileNotFoundError as e:
            raise FetchError(asset_id, str(e)) from e
        except (UnidentifiedImageError, OSError) as e:
            logger.debug(f"Could not render preview for {asset_id}: {e}")
            return None

    @staticmethod
    def _unique_staged_path(operation_dir: Path, path: Path) -> Path:
        staged_path = operation_dir / path.name

        # Handle filename conflicts
        counter = 1
        while staged_path.exists():
            staged_path = operation_dir / f"{path.stem}_{counter}{path.suffix}"
            counter += 1
        return staged_path

    def _rollback(self, staged: List[Tuple[Path, Path]]) -> None:
        for original_path, staged_path in reversed(staged):
            try:
                shutil.move(str(staged_path), str(original_path))
                logger.debug(f"Restored: {staged_path} -> {original_path}")
            except OSError as e:
                logger.error(f"Could not restore {original_path} from {staged_path}: {e}")

    @staticmethod
    def _remove_if_empty(directory: Path) -> None:
        try:
            if directory.exists() and not any(directory.iterdir()):
                directory.rmdir()
        except OSError as e:
            logger.debug(f"Could not remove {directory}: {e}")

    def _log_operation(self, entry: dict) -> None:
        """Append one deletion record to the operations log."""
        try:
            self.operations_log.parent.mkdir(parents=True, exist_ok=True)
            with open(self.operations_log, "a", encoding="utf-8") as f:
                f.write(json.dumps(entry) + "\n")
        except Exception as e:
            logger.warning(f"Failed to log operation: {e}")
