"""Unit tests for structured logging."""
import sys
import json
import logging
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

import pytest
from logger import JSONFormatter, setup_logging


def make_record(message="Index saved", level=logging.INFO, exc_info=None, **extra):
    record = logging.LogRecord(
        name="services.index_store",
        level=level,
        pathname=__file__,
        lineno=10,
        msg=message,
        args=None,
        exc_info=exc_info,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    """Test suite for JSONFormatter."""

    def test_basic_fields(self):
        data = json.loads(JSONFormatter().format(make_record()))

        assert data["level"] == "INFO"
        assert data["logger"] == "services.index_store"
        assert data["message"] == "Index saved"
        assert data["timestamp"].endswith("+00:00")

    def test_extra_fields_included(self):
        data = json.loads(JSONFormatter().format(make_record(chunks=42, model="mxbai-embed-large")))

        assert data["chunks"] == 42
        assert data["model"] == "mxbai-embed-large"
        assert "pathname" not in data
        assert "lineno" not in data

    def test_exception_included(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            exc_info = sys.exc_info()

        data = json.loads(JSONFormatter().format(make_record(level=logging.ERROR, exc_info=exc_info)))

        assert "RuntimeError: boom" in data["exception"]

    def test_unserializable_extra_uses_str(self):
        data = json.loads(JSONFormatter().format(make_record(path=Path("docs/a.md"))))

        assert data["path"] == "docs/a.md"


class TestSetupLogging:
    """Test suite for setup_logging."""

    @pytest.fixture(autouse=True)
    def restore_root(self):
        root = logging.getLogger()
        handlers, level = list(root.handlers), root.level
        yield
        root.handlers = handlers
        root.setLevel(level)

    def test_replaces_root_handlers(self):
        setup_logging("DEBUG")

        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JSONFormatter)
