"""
Static asset responder for the dashboard page.
"""

from pathlib import Path
from typing import Dict, Optional, Tuple

MIME_TYPES: Dict[str, str] = {
    ".html": "text/html",
    ".js": "application/javascript",
    ".css": "text/css",
    ".json": "application/json",
    ".png": "image/png",
}
DEFAULT_MIME_TYPE = "application/octet-stream"
INDEX_DOCUMENT = "index.html"


class StaticResponder:
    """Maps request paths to files under a fixed asset root."""

    def __init__(self, root: Path):
        self.root = Path(root).resolve()

    def resolve(self, request_path: str) -> Optional[Tuple[Path, str]]:
        """
        Find the file for a request path.

        Returns:
            (file path, content type), or None if there is no such file.
        """
        path = request_path.split("?", 1)[0]
        relative = path.strip("/") or INDEX_DOCUMENT

        candidate = (self.root / relative).resolve()
        if candidate != self.root and self.root not in candidate.parents:
            return None
        if not candidate.is_file():
            return None

        content_type = MIME_TYPES.get(candidate.suffix.lower(), DEFAULT_MIME_TYPE)
        return candidate, content_type
