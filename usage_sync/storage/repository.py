"""
Repository pattern for data access.

Reads and writes the usage JSON document. Writes are atomic and skipped
entirely when the serialized output is identical to the file on disk.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

from .models import Totals

DEFAULT_DOCUMENT_PATH = "public/data/cc.json"
DEFAULT_DOCUMENT_NAME = "cc.json"


def serialize_document(document: Dict[str, Any]) -> str:
    """Serialize a document the way it is stored on disk."""
    return json.dumps(document, indent=2, ensure_ascii=False) + "\n"


def blank_document(providers: Iterable[str]) -> Dict[str, Any]:
    """An empty document with zero totals and an empty section per provider."""
    document: Dict[str, Any] = {"totals": Totals.zero().to_dict()}
    for provider in providers:
        document[provider] = {"daily": [], "totals": Totals.zero().to_dict()}
    return document


class UsageRepository:
    """Repository for the usage JSON document at a single path.

    This class keeps file handling out of the merge logic: the core only
    ever sees parsed JSON and produces documents to serialize.
    """

    def __init__(self, path: str = DEFAULT_DOCUMENT_PATH):
        """Initialize the repository with a document path.

        Args:
            path: Path to the JSON document
        """
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.is_file()

    def read_text(self) -> Optional[str]:
        if not self.exists():
            return None
        return self.path.read_text(encoding="utf-8")

    def load(self) -> Any:
        """Parse the stored document, or return {} when there is none.

        Raises:
            ValueError: If the file exists but is not valid JSON
        """
        text = self.read_text()
        if text is None:
            return {}
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in {self.path}: {e}")

    def write(self, document: Dict[str, Any]) -> None:
        """Atomically replace the document on disk."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_path = tempfile.mkstemp(
            dir=str(self.path.parent), prefix=f".{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(serialize_document(document))
            os.replace(temp_path, self.path)
        except Exception:
            if os.path.exists(temp_path):
                os.unlink(temp_path)
            raise

    def write_if_changed(self, document: Dict[str, Any]) -> bool:
        """Write ``document`` unless the file already holds identical content.

        Returns:
            True if the file was written
        """
        if self.read_text() == serialize_document(document):
            return False
        self.write(document)
        return True


def resolve_init_target(target: Optional[str]) -> Path:
    """Path for a new document; non-.json targets are treated as directories."""
    path = Path(target) if target else Path(DEFAULT_DOCUMENT_PATH)
    if path.suffix != ".json":
        path = path / DEFAULT_DOCUMENT_NAME
    return path
