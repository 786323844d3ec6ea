"""Index build pipeline: discover, chunk, embed, persist."""
import logging
from typing import Callable, List, Optional

from config import DOCS_DIRECTORY, EMBEDDING_BATCH_SIZE, EMBEDDING_MODEL, RagConfig
from models.chunk import Chunk, EmbeddedChunk
from services.chunking_engine import ChunkingEngine
from services.document_loader import DocumentLoader
from services.embedding_model import EmbeddingModel
from services.errors import (
    EmbeddingBatchError,
    EmbeddingBatchTimeoutError,
    EmbeddingServiceError,
    EmbeddingTimeoutError,
)
from services.index_store import IndexStore

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str], None]


class IndexingService:
    """Build the on-disk index from a directory of documents."""

    def __init__(
        self,
        embedding_model: EmbeddingModel,
        storage: IndexStore,
        chunker: ChunkingEngine,
        document_loader: Optional[DocumentLoader] = None,
        model: str = EMBEDDING_MODEL,
        batch_size: int = EMBEDDING_BATCH_SIZE,
        progress_callback: Optional[ProgressCallback] = None
    ):
        """
        Initialize the indexing service.

        Args:
            embedding_model: Client used to embed chunk texts
            storage: Where the finished index is written
            chunker: Splits documents into chunks
            document_loader: Discovers source documents (defaults to Markdown files)
            model: Embedding model name, recorded in the index
            batch_size: Number of chunks sent per embedding request
            progress_callback: Receives a human-readable line for every stage
        """
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")

        self.embedding_model = embedding_model
        self.storage = storage
        self.chunker = chunker
        self.document_loader = document_loader or DocumentLoader()
        self.model = model
        self.batch_size = batch_size
        self.progress_callback = progress_callback

    @classmethod
    def from_config(
        cls,
        config: RagConfig,
        embedding_model: EmbeddingModel,
        progress_callback: Optional[ProgressCallback] = None
    ) -> "IndexingService":
        return cls(
            embedding_model=embedding_model,
            storage=IndexStore(config.index_path),
            chunker=ChunkingEngine(config.chunk_size, config.chunk_overlap),
            model=config.embedding_model,
            batch_size=config.batch_size,
            progress_callback=progress_callback
        )

    def build_index(self, source_directory: Optional[str] = None) -> int:
        """
        Rebuild the index from every supported document under ``source_directory``.

        The previous index is replaced as a whole. A directory without documents
        still produces (and persists) an empty index.

        Args:
            source_directory: Directory to scan (defaults to DOCS_DIRECTORY)

        Returns:
            Number of chunks written to the index

        Raises:
            ValueError: If the directory does not exist
            EmbeddingBatchError: If any batch fails to embed; nothing is saved
        """
        directory = source_directory or DOCS_DIRECTORY
        logger.info(f"Starting index build from directory: {directory}")
        extensions = ", ".join(self.document_loader.extensions)
        self._report(f"Scanning {directory} for {extensions} files...")

        documents = self.document_loader.load_documents(directory)

        if not documents:
            logger.warning(f"No documents found in {directory}")
            self._report(f"Warning: no {extensions} files found in {directory}; saving an empty index")
            chunks: List[Chunk] = []
        else:
            self._report(f"Found {len(documents)} documents: {', '.join(documents)}")
            self._report("Splitting documents into chunks...")
            chunks = self.chunker.chunk_all(documents)

            if not chunks:
                logger.warning("No chunks generated from documents")
                self._report("Warning: documents produced no chunks; saving an empty index")
            else:
                self._report(f"Generated {len(chunks)} chunks")

        embedded_chunks: List[EmbeddedChunk] = []
        if chunks:
            self._report(f"Generating embeddings with model: {self.model}...")
            embedded_chunks = self._embed_chunks(chunks)
            self._report(f"Generated {len(embedded_chunks)} embeddings")

        self._report("Saving index...")
        index = self.storage.create_index(embedded_chunks, self.model)
        self.storage.save(index)

        self._report(f"Index saved successfully! Total chunks: {len(embedded_chunks)}")
        logger.info(f"Index build complete. Total chunks: {len(embedded_chunks)}")
        return len(embedded_chunks)

    def _embed_chunks(self, chunks: List[Chunk]) -> List[EmbeddedChunk]:
        """
        Embed chunks batch by batch.

        The embedding service must return vectors in the order of the texts it
        was given; each batch is zipped positionally with its chunks.
        """
        total_batches = (len(chunks) + self.batch_size - 1) // self.batch_size
        logger.info(f"Embedding {len(chunks)} chunks in {total_batches} batches of {self.batch_size}")

        embedded_chunks: List[EmbeddedChunk] = []
        for batch_index, offset in enumerate(range(0, len(chunks), self.batch_size)):
            batch = chunks[offset:offset + self.batch_size]
            batch_number = batch_index + 1
            self._report(f"   Processing batch {batch_number}/{total_batches} ({len(batch)} chunks)...")

            try:
                embeddings = self.embedding_model.embed([chunk.text for chunk in batch], self.model)
                if len(embeddings) != len(batch):
                    raise EmbeddingServiceError(
                        f"expected {len(batch)} embeddings, got {len(embeddings)}"
                    )
            except (EmbeddingServiceError, ValueError) as e:
                logger.error(f"Failed to embed batch {batch_number}/{total_batches}", exc_info=True)
                self._report(f"   Failed to embed batch {batch_number}: {e}")
                error_class = (
                    EmbeddingBatchTimeoutError if isinstance(e, EmbeddingTimeoutError)
                    else EmbeddingBatchError
                )
                raise error_class(batch_number, total_batches, str(e)) from e

            embedded_chunks.extend(
                EmbeddedChunk.from_chunk(chunk, embedding)
                for chunk, embedding in zip(batch, embeddings)
            )
            logger.debug(f"Batch {batch_number}/{total_batches} completed")

        return embedded_chunks

    def _report(self, message: str) -> None:
        if self.progress_callback is not None:
            self.progress_callback(message)
