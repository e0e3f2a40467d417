"""
services/receipt_storage.py — Release of stored receipt and avatar images.

Images are uploaded elsewhere and referenced by URL. When a transaction is
deleted, or its photo replaced, the old file is released here. Release is
best effort and runs only after the database commit: a failure is logged
and never turns a successful request into an error.

Only URLs under RECEIPT_BASE_URL are ours to delete. Anything else (an
external link, an empty value) is ignored.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path


logger = logging.getLogger(__name__)


class ReceiptStorage:

    def __init__(self, base_url: str, storage_dir: str | os.PathLike) -> None:
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self.storage_dir = Path(storage_dir)

    def owns(self, url: str | None) -> bool:
        return bool(url) and url.startswith(self.base_url)

    def path_for(self, url: str) -> Path | None:
        """Local path of an owned URL, or None if the name would leave storage_dir."""
        name = url[len(self.base_url):]
        if not name or os.path.basename(name) != name or name in (".", ".."):
            return None
        return self.storage_dir / name

    def release(self, url: str | None) -> bool:
        """
        Deletes the file behind an owned URL.

        Returns True if a file was removed. Never raises.
        """
        if not self.owns(url):
            return False

        path = self.path_for(url)
        if path is None:
            logger.warning("Refusing to release receipt with unsafe name: %s", url)
            return False

        try:
            path.unlink()
        except FileNotFoundError:
            logger.info("Receipt already gone: %s", path)
            return False
        except OSError as exc:
            logger.warning("Could not release receipt %s: %s", path, exc)
            return False

        logger.debug("Released receipt %s", path)
        return True
