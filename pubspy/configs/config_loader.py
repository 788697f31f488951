"""
Leitura dos arquivos JSON de ajuste (timeouts, lotes, TTLs).

Os arquivos ficam ao lado deste módulo (pubspy/configs/<grupo>/<nome>.json).
``PUBSPY_CONFIG_DIR`` aponta para outro diretório com a mesma estrutura;
arquivo ausente lá cai no padrão empacotado.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

PACKAGED_DIR = Path(__file__).resolve().parent
CONFIG_DIR_ENV = "PUBSPY_CONFIG_DIR"

_loaded: Dict[str, Dict[str, Any]] = {}


def _search_dirs() -> List[Path]:
    override = os.getenv(CONFIG_DIR_ENV)
    if override:
        return [Path(override), PACKAGED_DIR]
    return [PACKAGED_DIR]


def _read(path: Path) -> Optional[Dict[str, Any]]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return None
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning(f"⚠️ [Config] {path} ilegível: {exc}")
        return None
    if not isinstance(data, dict):
        logger.warning(f"⚠️ [Config] {path} não contém um objeto JSON")
        return None
    return data


def load_config(name: str, *, use_cache: bool = True) -> Dict[str, Any]:
    """load_config("discovery/search") -> conteúdo de discovery/search.json ({} se ausente)."""
    key = name[:-5] if name.endswith(".json") else name
    if use_cache and key in _loaded:
        return _loaded[key]

    data: Dict[str, Any] = {}
    for directory in _search_dirs():
        found = _read(directory / f"{key}.json")
        if found is not None:
            data = found
            break
    else:
        logger.warning(f"[Config] {key}.json não encontrado")

    if use_cache:
        _loaded[key] = data
    return data


def get_section(name: str, default: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    return load_config(name) or (default or {})


def reset_cache() -> None:
    _loaded.clear()
