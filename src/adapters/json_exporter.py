"""Exportación JSON de resultados agregados.

Por qué JSON:
- Interoperabilidad con scripts y otras herramientas (jq, dashboards).
- Permite guardar una foto del estado sin depender del render en terminal.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from pathlib import Path

from pydantic import BaseModel


def export_items_json(*, items: Sequence[BaseModel], output_path: Path) -> Path:
    """Exporta una lista de entidades a JSON UTF-8 con formato estable."""

    output_path.parent.mkdir(parents=True, exist_ok=True)
    payload = [item.model_dump(mode="json") for item in items]
    output_path.write_text(
        json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True) + "\n",
        encoding="utf-8",
    )
    return output_path
