"""Document loading service for text sources."""
import logging
from pathlib import Path
from typing import Dict, Iterable, Tuple

logger = logging.getLogger(__name__)


class DocumentLoader:
    """Loads text documents from a directory tree."""

    def __init__(self, extensions: Iterable[str] = (".md",)):
        """
        Initialize DocumentLoader.

        Args:
            extensions: File suffixes to pick up (case-insensitive)
        """
        self.extensions: Tuple[str, ...] = tuple(ext.lower() for ext in extensions)

    def load_documents(self, directory: str) -> Dict[str, str]:
        """
        Load all matching files under ``directory`` and its subdirectories.

        Args:
            directory: Root directory to scan

        Returns:
            Mapping of POSIX path relative to ``directory`` to file content,
            in sorted path order

        Raises:
            ValueError: If ``directory`` does not exist or is not a directory
        """
        root = Path(directory)
        if not root.is_dir():
            logger.error(f"Directory does not exist or is not a directory: {directory}")
            raise ValueError(f"Invalid directory: {directory}")

        files = sorted(
            path for path in root.rglob("*")
            if path.is_file() and path.suffix.lower() in self.extensions
        )
        logger.info(f"Found {len(files)} files matching {', '.join(self.extensions)} in {directory}")

        documents: Dict[str, str] = {}
        for path in files:
            relative_path = path.relative_to(root).as_posix()
            try:
                content = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                logger.warning(f"Failed to read {relative_path}: {e}")
                continue

            if not content.strip():
                logger.warning(f"Skipping empty file: {relative_path}")
                continue

            documents[relative_path] = content
            logger.debug(f"Loaded {relative_path} ({len(content)} chars)")

        logger.info(f"Successfully loaded {len(documents)} documents")
        return documents
