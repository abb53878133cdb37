from meshc.importers.base import MeshImporter
from meshc.importers.obj import ObjImporter

__all__ = ["MeshImporter", "ObjImporter"]
