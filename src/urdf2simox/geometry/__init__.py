"""
Geometry module for urdf2simox - mesh reference resolution and conversion
"""

from .converters import MeshConverter, MeshlabConverter, TrimeshVrmlConverter, build_converter
from .delegate import MeshDelegate
from .packages import PackageResolver

__all__ = [
    "MeshConverter",
    "MeshlabConverter",
    "TrimeshVrmlConverter",
    "build_converter",
    "MeshDelegate",
    "PackageResolver"
]
