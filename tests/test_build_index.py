"""Unit tests for the build_index command-line entry point."""
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

from unittest.mock import patch
import build_index
from services.errors import EmbeddingBatchError


class TestBuildIndexCli:
    """Test suite for build_index.main."""

    def test_parse_args(self):
        args = build_index.parse_args(["docs", "--index-path", "out/index.json", "--json-logs"])

        assert args.directory == "docs"
        assert args.index_path == "out/index.json"
        assert args.json_logs is True

    @patch('build_index.IndexingService')
    @patch('build_index.EmbeddingModel')
    def test_success_returns_zero(self, mock_embedding_class, mock_service_class):
        mock_service_class.from_config.return_value.build_index.return_value = 7

        exit_code = build_index.main(["docs", "--index-path", "out/index.json"])

        assert exit_code == 0
        config = mock_service_class.from_config.call_args[0][0]
        assert config.index_path == "out/index.json"
        mock_service_class.from_config.return_value.build_index.assert_called_once_with("docs")

    @patch('build_index.IndexingService')
    @patch('build_index.EmbeddingModel')
    def test_embedding_failure_returns_one(self, mock_embedding_class, mock_service_class):
        mock_service_class.from_config.return_value.build_index.side_effect = EmbeddingBatchError(
            3, 4, "connection refused"
        )

        assert build_index.main(["docs"]) == 1

    @patch('build_index.IndexingService')
    @patch('build_index.EmbeddingModel')
    def test_invalid_directory_returns_one(self, mock_embedding_class, mock_service_class):
        mock_service_class.from_config.return_value.build_index.side_effect = ValueError(
            "Invalid directory: nowhere"
        )

        assert build_index.main(["nowhere"]) == 1
