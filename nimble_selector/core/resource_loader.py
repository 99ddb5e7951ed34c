"""
Resource loaders for the rule tables.

A loader fetches one named JSON resource. Loaders raise ResourceLoadError on
failure; callers decide how to degrade.
"""
import asyncio
import json
from pathlib import Path
from typing import Any, Dict, Protocol, Union

from nimble_selector.core.errors import ResourceLoadError


class ResourceLoader(Protocol):
    """Fetches a JSON resource by path."""

    async def fetch(self, path: str) -> Any:
        ...


class FileResourceLoader:
    """Loads JSON resources from a directory on disk."""

    def __init__(self, base_path: Union[str, Path]):
        self.base_path = Path(base_path)

    def _read_json(self, filepath: Path) -> Any:
        try:
            with open(filepath, "r", encoding="utf-8") as f:
                return json.load(f)
        except FileNotFoundError:
            raise ResourceLoadError(str(filepath), "file not found")
        except json.JSONDecodeError as e:
            raise ResourceLoadError(str(filepath), f"invalid JSON ({e.msg})")

    async def fetch(self, path: str) -> Any:
        """Read and parse base_path/path off the event loop thread."""
        return await asyncio.to_thread(self._read_json, self.base_path / path)


class InMemoryResourceLoader:
    """Serves resources from a dict. Missing keys behave like missing files."""

    def __init__(self, resources: Dict[str, Any]):
        self.resources = resources
        self.requested = []

    async def fetch(self, path: str) -> Any:
        self.requested.append(path)
        if path not in self.resources:
            raise ResourceLoadError(path, "file not found")
        return self.resources[path]
