import json
from pathlib import Path
from typing import Any, Dict, Optional, Protocol, Union


class SnapshotStore(Protocol):
    """Armazenamento chave-valor local onde a revisão guarda o rascunho."""

    def get(self, key: str) -> Optional[Dict[str, Any]]: ...

    def set(self, key: str, value: Dict[str, Any]) -> None: ...

    def clear(self, key: str) -> None: ...


class MemorySnapshotStore:
    def __init__(self):
        self._data: Dict[str, Dict[str, Any]] = {}

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        value = self._data.get(key)
        return json.loads(json.dumps(value)) if value is not None else None

    def set(self, key: str, value: Dict[str, Any]) -> None:
        # Cópia serializada, igual ao que um storage real faria
        self._data[key] = json.loads(json.dumps(value))

    def clear(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileSnapshotStore:
    """Um arquivo JSON por chave dentro de `directory`."""

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        safe_key = "".join(c if c.isalnum() or c in "-_." else "_" for c in key)
        return self.directory / f"{safe_key}.json"

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            # Arquivo corrompido não é recuperável
            path.unlink(missing_ok=True)
            return None

    def set(self, key: str, value: Dict[str, Any]) -> None:
        path = self._path(key)
        tmp = path.with_suffix(".tmp")
        tmp.write_text(json.dumps(value, ensure_ascii=False), encoding="utf-8")
        tmp.replace(path)

    def clear(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)
