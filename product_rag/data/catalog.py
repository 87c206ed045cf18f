from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

from pydantic import TypeAdapter

from product_rag.schemas import CatalogEntry

SAMPLE_CATALOG_PATH = Path(__file__).resolve().parent / "catalog.json"

_catalog_adapter = TypeAdapter(list[CatalogEntry])


def load_catalog(path: Optional[str | Path] = None) -> list[CatalogEntry]:
    """Load catalog entries from a JSON array; the bundled sample by default."""
    source = Path(path) if path else SAMPLE_CATALOG_PATH
    with source.open("r", encoding="utf-8") as handle:
        payload = json.load(handle)
    return _catalog_adapter.validate_python(payload)
