"""
Index build script for the document RAG service.

This script:
1. Scans a directory (recursively) for Markdown files
2. Splits them into overlapping chunks
3. Generates embeddings with the configured Ollama model
4. Replaces the index file with the result

Usage:
    python build_index.py [DIRECTORY] [--index-path PATH] [--json-logs]
"""
import sys
import argparse
from dataclasses import replace
import logging
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent))

from config import DOCS_DIRECTORY, LOG_LEVEL, RagConfig
from logger import setup_logging
from services.embedding_model import EmbeddingModel
from services.errors import EmbeddingServiceError
from services.indexing_service import IndexingService

logger = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Build the RAG index from a directory of documents.")
    parser.add_argument(
        "directory",
        nargs="?",
        default=DOCS_DIRECTORY,
        help="Directory to index (default: DOCS_DIRECTORY or the current directory)",
    )
    parser.add_argument("--index-path", help="Override INDEX_PATH for this run")
    parser.add_argument("--json-logs", action="store_true", help="Emit structured JSON logs")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    """Main index build process."""
    args = parse_args(argv)
    if args.json_logs:
        setup_logging(LOG_LEVEL)

    try:
        config = RagConfig.from_env()
        if args.index_path:
            config = replace(config, index_path=args.index_path)

        embedding_model = EmbeddingModel(
            base_url=config.ollama_base_url,
            model_name=config.embedding_model,
            timeout=config.request_timeout
        )
        indexing_service = IndexingService.from_config(
            config, embedding_model, progress_callback=print
        )

        count = indexing_service.build_index(args.directory)
        logger.info(f"Indexed {count} chunks into {config.index_path}")
        return 0

    except KeyboardInterrupt:
        logger.warning("Index build interrupted by user")
        return 1
    except (ValueError, EmbeddingServiceError) as e:
        logger.error(f"Index build failed: {e}")
        return 1
    except Exception as e:
        logger.error(f"Index build failed: {str(e)}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
