# meshc/importers/base.py
from abc import ABC, abstractmethod
from pathlib import Path

from meshc.types import ParsedMesh


class MeshImporter(ABC):
    @abstractmethod
    def import_file(self, path: Path) -> ParsedMesh:
        """
        Read a mesh file from disk into triangles, groups and the
        vertex table.
        """
        pass

    @abstractmethod
    def parse(self, text: str, source: str = "<string>") -> ParsedMesh:
        """Same as import_file, for text already in memory."""
        pass
