"""Character-window chunking with word-boundary preservation."""
import logging
from typing import Dict, List

from models.chunk import Chunk
from config import CHUNK_SIZE, CHUNK_OVERLAP

logger = logging.getLogger(__name__)


class ChunkingEngine:
    """Segments documents into overlapping, retrievable chunks."""

    def __init__(self, chunk_size: int = CHUNK_SIZE, chunk_overlap: int = CHUNK_OVERLAP):
        """
        Initialize ChunkingEngine.

        Args:
            chunk_size: Maximum chunk size in characters
            chunk_overlap: Characters shared by consecutive windows

        Raises:
            ValueError: If the overlap is negative or not smaller than the chunk size
        """
        if chunk_overlap < 0:
            raise ValueError("Overlap must be non-negative")
        if chunk_size <= chunk_overlap:
            raise ValueError("Chunk size must be greater than overlap")

        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap

    def chunk(self, content: str, source: str) -> List[Chunk]:
        """
        Split one document into overlapping chunks.

        A window that is not the last one and fills ``chunk_size`` is cut back to
        its last space when that space lies past the window's midpoint, so words
        are not split. Windows that are empty after trimming are dropped and do
        not consume a position.

        Args:
            content: Full document text
            source: Name the chunks are attributed to

        Returns:
            Chunks in document order, positions starting at 0
        """
        if not content or not content.strip():
            logger.warning(f"Received blank content for source: {source}")
            return []

        chunks: List[Chunk] = []
        step = self.chunk_size - self.chunk_overlap
        length = len(content)
        position = 0
        start = 0

        while start < length:
            end = min(start + self.chunk_size, length)
            window = content[start:end]

            if end < length and end - start == self.chunk_size:
                last_space = window.rfind(" ")
                if last_space > self.chunk_size // 2:
                    window = window[:last_space]

            text = window.strip()
            if text:
                chunks.append(Chunk(text=text, source=source, position=position))
                position += 1

            if step <= 0:
                logger.error(
                    f"Invalid step size: {step} (chunk_size: {self.chunk_size}, "
                    f"overlap: {self.chunk_overlap})"
                )
                break
            start += step

        logger.debug(
            f"Chunked {source} into {len(chunks)} chunks "
            f"(chunk_size: {self.chunk_size}, overlap: {self.chunk_overlap})"
        )
        return chunks

    def chunk_all(self, documents: Dict[str, str]) -> List[Chunk]:
        """
        Chunk several documents, keeping the given source order.

        Args:
            documents: Mapping of source name to document text

        Returns:
            Concatenated chunks of every document
        """
        logger.info(f"Chunking {len(documents)} documents")

        all_chunks: List[Chunk] = []
        for source, content in documents.items():
            all_chunks.extend(self.chunk(content, source))

        logger.info(f"Created {len(all_chunks)} chunks from {len(documents)} documents")
        return all_chunks
