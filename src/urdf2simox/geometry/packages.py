"""
ROS 包路径解析
把 package://<pkg>/... 中的包名映射为文件系统目录
"""

import os
from pathlib import Path
from typing import Dict, Iterable, Iterator, Mapping, Optional

from ..core.errors import UnresolvedPackage
from ..core.logger import get_logger

logger = get_logger(__name__)


class PackageResolver:
    """
    包路径解析器

    搜索顺序:
    1) 显式映射 (配置中的 packages)
    2) ROS_PACKAGE_PATH (ROS 1)
    3) AMENT_PREFIX_PATH / CMAKE_PREFIX_PATH 下的 share/<pkg>
    4) /opt/ros/<distro>/share/<pkg>
    """

    def __init__(self, explicit: Optional[Mapping[str, str]] = None, environ: Optional[Mapping[str, str]] = None,
                 ros_root: str = "/opt/ros"):
        self.explicit: Dict[str, str] = dict(explicit or {})
        self.environ = os.environ if environ is None else environ
        self.ros_root = Path(ros_root)

    def resolve(self, package_name: str) -> str:
        """
        Args:
            package_name: 包名

        Returns:
            包目录的绝对路径

        Raises:
            UnresolvedPackage: 找不到该包
        """
        if package_name in self.explicit:
            path = Path(self.explicit[package_name]).expanduser()
            if not path.is_dir():
                raise UnresolvedPackage(f"Package '{package_name}' is mapped to missing directory {path}.")
            return str(path.resolve())

        for candidate in self._candidates(package_name):
            if candidate.is_dir():
                logger.debug(f"Resolved package '{package_name}' -> {candidate}")
                return str(candidate.resolve())

        raise UnresolvedPackage(
            f"ROS package not found: '{package_name}'. "
            "Map it under 'packages' in the config or source the workspace environment."
        )

    def _candidates(self, package_name: str) -> Iterator[Path]:
        for root in _split_paths(self.environ.get("ROS_PACKAGE_PATH", "")):
            if root.name == package_name:
                yield root
            yield root / package_name
            # catkin 工作区的 src/ 下可能多一层目录
            if root.is_dir():
                for child in sorted(root.iterdir()):
                    if child.is_dir():
                        yield child / package_name

        for var in ("AMENT_PREFIX_PATH", "CMAKE_PREFIX_PATH"):
            for prefix in _split_paths(self.environ.get(var, "")):
                yield prefix / "share" / package_name

        if self.ros_root.is_dir():
            for distro in sorted(self.ros_root.iterdir()):
                yield distro / "share" / package_name


def _split_paths(value: str) -> Iterable[Path]:
    return [Path(p) for p in value.split(os.pathsep) if p]
