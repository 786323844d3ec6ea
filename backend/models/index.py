"""Persisted index data model."""
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List

from models.chunk import EmbeddedChunk

_FRACTION = re.compile(r"\.(\d+)")


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp, including a trailing ``Z`` and nanosecond fractions."""
    text = str(value).strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    # fromisoformat before 3.11 only takes 3 or 6 fractional digits
    text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
    return datetime.fromisoformat(text)


@dataclass
class RagIndex:
    """All embedded chunks produced by one index build."""
    model: str
    created_at: datetime
    chunks: List[EmbeddedChunk] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the on-disk document layout."""
        return {
            "model": self.model,
            "createdAt": self.created_at.isoformat(),
            "chunks": [
                {
                    "text": chunk.text,
                    "source": chunk.source,
                    "position": chunk.position,
                    "embedding": list(chunk.embedding),
                }
                for chunk in self.chunks
            ],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RagIndex":
        """
        Rebuild an index from its on-disk document layout.

        Raises:
            KeyError, TypeError, ValueError: If the document is malformed
        """
        if not isinstance(data, dict):
            raise TypeError(f"Expected a JSON object, got {type(data).__name__}")

        chunks = [
            EmbeddedChunk(
                text=str(item["text"]),
                source=str(item["source"]),
                position=int(item["position"]),
                embedding=[float(value) for value in item["embedding"]],
            )
            for item in data["chunks"]
        ]
        return cls(
            model=str(data["model"]),
            created_at=parse_timestamp(data["createdAt"]),
            chunks=chunks,
        )
