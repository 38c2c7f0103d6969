"""
Piece catalog — authored furniture templates loaded from YAML.

Example file:

    pieces:
      - name: sofa
        cells: [[0, 0, 0], [1, 0, 0], [2, 0, 0]]
        pivot: [1, 0, 0]
        forbid_upside_down: true
      - name: lamp
        cells: [[0, 0, 0], [0, 1, 0]]
        must_be_standing: true
        fragile_top: true

The file is validated with pydantic and turned into immutable
``PieceTemplate`` values that are loaded once and never mutated.
"""

import logging
from pathlib import Path
from typing import Dict, List

import yaml
from pydantic import BaseModel, Field, field_validator

from truckpacker.config import PieceTemplate

logger = logging.getLogger(__name__)


class PieceSchema(BaseModel):
    """One catalog entry."""
    name: str = Field(min_length=1)
    cells: List[List[int]] = Field(min_length=1)
    pivot: List[int] = Field(default_factory=lambda: [0, 0, 0])
    fragile_top: bool = False
    must_be_standing: bool = False
    forbid_upside_down: bool = False

    @field_validator("cells")
    @classmethod
    def _cells_are_triples(cls, cells: List[List[int]]) -> List[List[int]]:
        for c in cells:
            if len(c) != 3:
                raise ValueError(f"cell {c} must have exactly 3 coordinates")
        if len({tuple(c) for c in cells}) != len(cells):
            raise ValueError("cells must be unique")
        return cells

    @field_validator("pivot")
    @classmethod
    def _pivot_is_triple(cls, pivot: List[int]) -> List[int]:
        if len(pivot) != 3:
            raise ValueError(f"pivot {pivot} must have exactly 3 coordinates")
        return pivot

    def to_template(self) -> PieceTemplate:
        return PieceTemplate(
            name=self.name,
            cells=tuple(tuple(c) for c in self.cells),
            pivot=tuple(self.pivot),
            fragile_top=self.fragile_top,
            must_be_standing=self.must_be_standing,
            forbid_upside_down=self.forbid_upside_down,
        )


class CatalogSchema(BaseModel):
    pieces: List[PieceSchema]


def parse_catalog(data: dict) -> Dict[str, PieceTemplate]:
    """Validate raw catalog data and index the templates by name."""
    catalog = CatalogSchema(**data)
    templates: Dict[str, PieceTemplate] = {}
    for piece in catalog.pieces:
        if piece.name in templates:
            raise ValueError(f"Duplicate piece name in catalog: {piece.name!r}")
        templates[piece.name] = piece.to_template()
    return templates


def load_catalog(file_path) -> Dict[str, PieceTemplate]:
    """
    Load piece templates from a YAML catalog file.

    Raises:
        FileNotFoundError:        If the file doesn't exist.
        ValueError:               Empty file or duplicate names.
        pydantic.ValidationError: Malformed entries.
    """
    file_path = Path(file_path)
    if not file_path.exists():
        raise FileNotFoundError(f"Catalog file not found: {file_path}")

    with open(file_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if not data:
        raise ValueError(f"Catalog file is empty: {file_path}")

    templates = parse_catalog(data)
    logger.info("Loaded %d piece templates from %s", len(templates), file_path)
    return templates
