"""Where the vector store id lives between requests.

Layered lookup, first hit wins:
  1. ``VECTOR_STORE_ID`` (settings) — reproducible deployments.
  2. Process memory — set by the last successful bootstrap or discovery.
  3. A small text file — survives restarts on a persistent disk.

Writes go to memory and the file, last writer wins.  The environment tier
is read-only.
"""

import logging
import os

logger = logging.getLogger(__name__)


class CollectionStore:
    """Holds one collection id.  Inject a fresh instance per app (or test)."""

    def __init__(self, env_id: str = "", id_file: str | None = None) -> None:
        self.env_id = env_id.strip()
        self.id_file = id_file
        self._memory_id: str | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def load(self) -> str | None:
        """Prime the memory tier from the file tier.  Called on startup."""
        file_id = self._read_file()
        if file_id:
            self._memory_id = file_id
        current = self.get()
        if current:
            logger.info("Vector store id loaded from %s: %s", self.source, current)
        else:
            logger.info("No vector store id persisted yet.")
        return current

    # ------------------------------------------------------------------
    # Core operations
    # ------------------------------------------------------------------

    def get(self) -> str | None:
        if self.env_id:
            return self.env_id
        if self._memory_id:
            return self._memory_id
        file_id = self._read_file()
        if file_id:
            self._memory_id = file_id
        return file_id

    @property
    def source(self) -> str | None:
        """Which tier :meth:`get` would answer from."""
        if self.env_id:
            return "environment"
        if self._memory_id:
            return "memory"
        if self._read_file():
            return "file"
        return None

    def set(self, collection_id: str) -> None:
        self._memory_id = collection_id
        logger.info("Vector store id saved to memory: %s", collection_id)

        if not self.id_file:
            return
        try:
            with open(self.id_file, "w") as f:
                f.write(collection_id)
            logger.info("Vector store id saved to %s", self.id_file)
        except OSError as exc:
            # Read-only or ephemeral filesystems: memory still holds the id.
            logger.warning("Could not save vector store id to %s: %s", self.id_file, exc)

    def clear(self) -> None:
        """Forget the memory and file tiers.  The environment tier stays."""
        self._memory_id = None
        if self.id_file and os.path.exists(self.id_file):
            try:
                os.remove(self.id_file)
            except OSError as exc:
                logger.warning("Could not delete %s: %s", self.id_file, exc)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _read_file(self) -> str | None:
        if not self.id_file or not os.path.exists(self.id_file):
            return None
        try:
            with open(self.id_file) as f:
                return f.read().strip() or None
        except OSError as exc:
            logger.error("Error reading vector store id from %s: %s", self.id_file, exc)
            return None
