"""Flat-file persistence for the RAG index."""
import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from models.chunk import EmbeddedChunk
from models.index import RagIndex
from services.errors import IndexCorruptError
from config import INDEX_PATH

logger = logging.getLogger(__name__)


class IndexStore:
    """Store and load the whole index as a single JSON document."""

    def __init__(self, index_path: str = INDEX_PATH):
        """
        Initialize the index store.

        Args:
            index_path: Location of the index file; parent directories are
                created on the first save
        """
        self.index_path = Path(index_path)

    def save(self, index: RagIndex) -> None:
        """
        Write ``index`` to disk, replacing any previous index.

        The document is written to a temporary file next to the target and then
        moved over it, so readers never observe a partially written file.

        Args:
            index: Index to persist

        Raises:
            OSError: If the file cannot be written
        """
        logger.info(f"Saving RAG index with {len(index.chunks)} chunks to {self.index_path}")

        directory = self.index_path.parent
        if not directory.exists():
            logger.debug(f"Creating index directory: {directory}")
        directory.mkdir(parents=True, exist_ok=True)

        payload = json.dumps(index.to_dict(), indent=2, ensure_ascii=False)

        fd, tmp_name = tempfile.mkstemp(
            dir=str(directory), prefix=f".{self.index_path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as tmp_file:
                tmp_file.write(payload)
            os.replace(tmp_name, self.index_path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            logger.error(f"Failed to save RAG index to {self.index_path}", exc_info=True)
            raise

        logger.info(f"Successfully saved RAG index to {self.index_path.resolve()}")
        logger.debug(f"Index size: {self.index_path.stat().st_size} bytes")

    def load(self) -> Optional[RagIndex]:
        """
        Load the index from disk.

        Returns:
            The stored index, or None if the file is missing or blank

        Raises:
            IndexCorruptError: If the file exists but cannot be decoded
        """
        if not self.index_path.exists():
            logger.warning(f"Index file not found: {self.index_path}")
            return None

        logger.debug(f"Loading RAG index from {self.index_path}")
        try:
            raw = self.index_path.read_text(encoding="utf-8")
            if not raw.strip():
                logger.warning(f"Index file is empty: {self.index_path}")
                return None
            index = RagIndex.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError) as e:
            logger.error(f"Failed to load RAG index from {self.index_path}: {e}")
            raise IndexCorruptError(str(self.index_path), str(e)) from e

        logger.info(f"Loaded RAG index with {len(index.chunks)} chunks (model: {index.model})")
        return index

    def exists(self) -> bool:
        return self.index_path.exists()

    @staticmethod
    def create_index(chunks: List[EmbeddedChunk], model: str) -> RagIndex:
        """Wrap embedded chunks into an index stamped with the current time."""
        return RagIndex(
            model=model,
            created_at=datetime.now(timezone.utc),
            chunks=list(chunks),
        )
