"""
Utilitaires IO JSON (rapides) basés sur orjson.
- read_json(Path)  → Any | None (None si fichier manquant)
- write_json(Path, data) → écriture atomique (fichier temporaire + os.replace)

Attention:
- orjson renvoie/attend des bytes; on lit/écrit en mode binaire.
- read_json laisse remonter orjson.JSONDecodeError : à l'appelant de décider.
- Un crash pendant write_json laisse l'ancien fichier intact (au pire un .tmp orphelin).
"""
import os
from pathlib import Path
from typing import Any

import orjson as json


def read_json(path: Path) -> Any:
    """Lit un fichier JSON (ou None s'il n'existe pas)."""
    if not path.exists():
        return None
    with path.open("rb") as f:
        return json.loads(f.read())


def write_json(path: Path, data: Any) -> None:
    """Écrit un fichier JSON indenté, de manière atomique (dossier parent créé si absent)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = json.dumps(data, option=json.OPT_INDENT_2)
    tmp = path.with_name(path.name + ".tmp")
    with tmp.open("wb") as f:
        f.write(payload)
        f.flush()
        os.fsync(f.fileno())
    os.replace(tmp, path)
