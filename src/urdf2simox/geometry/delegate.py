"""
Mesh 委托
解析 package:// 路径、确定输出文件名，再交给转换器生成 .wrl
"""

from pathlib import Path
from typing import List

from ..core.errors import MalformedMeshReference
from ..core.logger import get_logger
from .converters import MeshConverter
from .packages import PackageResolver

logger = get_logger(__name__)

PACKAGE_PREFIX = "package://"


class MeshDelegate:
    """
    每次调用都会重新运行转换器 (不做缓存)

    Args:
        output_dir: 输出目录，mesh 写入 <output_dir>/<subdir>/
        resolver: 包路径解析器
        converter: mesh 转换器
        extension: 目标扩展名
        subdir: mesh 子目录名
    """

    def __init__(self, output_dir: str, resolver: PackageResolver, converter: MeshConverter,
                 extension: str = ".wrl", subdir: str = "meshes"):
        self.output_dir = str(output_dir)
        self.resolver = resolver
        self.converter = converter
        self.extension = extension
        self.subdir = subdir

    @property
    def mesh_dir(self) -> Path:
        return Path(self.output_dir) / self.subdir

    @staticmethod
    def split_reference(reference: str) -> List[str]:
        """package://pkg/a/b.stl -> ["pkg", "a", "b.stl"]"""
        if not reference.startswith(PACKAGE_PREFIX):
            raise MalformedMeshReference(f"The prefix of {reference} is NOT {PACKAGE_PREFIX}.")

        segments = reference[len(PACKAGE_PREFIX):].split("/")
        if len(segments) < 2 or not segments[0] or not "/".join(segments[1:]):
            raise MalformedMeshReference(f"{reference} is either empty or too short.")
        return segments

    def target_filename(self, reference: str) -> str:
        """base_link.STL -> base_link.wrl (截断到第一个 '.')"""
        last = reference.rsplit("/", 1)[-1]
        return last.split(".", 1)[0] + self.extension

    def convert(self, reference: str) -> str:
        """
        Args:
            reference: 形如 package://dms_description/meshes/base_link.STL

        Returns:
            转换后的 mesh 路径
        """
        segments = self.split_reference(reference)
        package_dir = self.resolver.resolve(segments[0])
        source = "/".join([package_dir.rstrip("/")] + segments[1:])

        mesh_dir = self.mesh_dir
        mesh_dir.mkdir(parents=True, exist_ok=True)
        target = str(mesh_dir / self.target_filename(reference))

        logger.info(f"Converting mesh {reference} -> {target}")
        self.converter.convert(source, target)
        return target
