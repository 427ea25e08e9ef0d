"""
Mesh 转换器
将源 mesh (STL/DAE/OBJ ...) 转换为 Simox 可读的 VRML (.wrl)

- MeshlabConverter: 调用 meshlabserver，通过扫描标准输出中的错误标记判断失败
- TrimeshVrmlConverter: 进程内使用 trimesh 直接写 VRML 2.0
"""

import subprocess
from pathlib import Path
from typing import List, Sequence

import numpy as np
import trimesh
from omegaconf import DictConfig

from ..core.errors import MeshConversionFailed
from ..core.logger import get_logger

logger = get_logger(__name__)

DEFAULT_FAILURE_MARKER = "loaded has 0 vn"


class MeshConverter:
    """转换器接口：source 路径进，target 路径出"""

    def convert(self, source: str, target: str) -> None:
        raise NotImplementedError


class MeshlabConverter(MeshConverter):
    """
    外部工具转换器

    工具只通过标准输出中的诊断字符串报告失败，退出码不可靠；
    check_exit_code=True 时额外要求退出码为 0
    """

    def __init__(self, command: Sequence[str] = ("meshlabserver", "-i", "{source}", "-o", "{target}"),
                 failure_marker: str = DEFAULT_FAILURE_MARKER, check_exit_code: bool = False):
        self.command = [str(arg) for arg in command]
        self.failure_marker = failure_marker
        self.check_exit_code = check_exit_code

    def build_command(self, source: str, target: str) -> List[str]:
        return [arg.replace("{source}", source).replace("{target}", target) for arg in self.command]

    def convert(self, source: str, target: str) -> None:
        cmd = self.build_command(source, target)
        logger.debug(f"Running: {' '.join(cmd)}")

        try:
            proc = subprocess.Popen(cmd, stdout=subprocess.PIPE, text=True, errors="replace")
        except OSError as e:
            raise MeshConversionFailed(f"Could not start mesh converter '{cmd[0]}': {e}") from e

        # 退出 with 块时关闭管道并回收子进程
        with proc:
            for line in proc.stdout:
                if self.failure_marker in line:
                    proc.kill()
                    raise MeshConversionFailed(
                        f"The following system call failed. Check URDF data.\n{' '.join(cmd)}\n{line.strip()}"
                    )
            returncode = proc.wait()

        if self.check_exit_code and returncode != 0:
            raise MeshConversionFailed(f"Mesh converter exited with status {returncode}: {' '.join(cmd)}")


class TrimeshVrmlConverter(MeshConverter):
    """使用 trimesh 加载网格并写出 VRML 2.0 IndexedFaceSet (带顶点法向)"""

    def convert(self, source: str, target: str) -> None:
        try:
            mesh = trimesh.load(source, force="mesh")
        except Exception as e:
            raise MeshConversionFailed(f"trimesh could not load {source}: {e}") from e

        if not isinstance(mesh, trimesh.Trimesh) or len(mesh.vertices) == 0 or len(mesh.faces) == 0:
            raise MeshConversionFailed(f"Mesh {source} has no usable geometry.")

        Path(target).write_text(mesh_to_vrml(mesh), encoding="utf-8")


def mesh_to_vrml(mesh: trimesh.Trimesh) -> str:
    """
    生成 VRML 2.0 文本

    Args:
        mesh: trimesh.Trimesh 对象

    Returns:
        .wrl 文件内容
    """
    vertices = np.asarray(mesh.vertices, dtype=np.float64)
    normals = np.asarray(mesh.vertex_normals, dtype=np.float64)
    faces = np.asarray(mesh.faces, dtype=np.int64)

    point_lines = ",\n".join(f"          {v[0]:.6f} {v[1]:.6f} {v[2]:.6f}" for v in vertices)
    normal_lines = ",\n".join(f"          {n[0]:.6f} {n[1]:.6f} {n[2]:.6f}" for n in normals)
    index_lines = ",\n".join(f"        {f[0]}, {f[1]}, {f[2]}, -1" for f in faces)

    return (
        "#VRML V2.0 utf8\n"
        "Shape {\n"
        "  appearance Appearance { material Material { } }\n"
        "  geometry IndexedFaceSet {\n"
        "    coord Coordinate {\n"
        "      point [\n"
        f"{point_lines}\n"
        "      ]\n"
        "    }\n"
        "    normal Normal {\n"
        "      vector [\n"
        f"{normal_lines}\n"
        "      ]\n"
        "    }\n"
        "    normalPerVertex TRUE\n"
        "    coordIndex [\n"
        f"{index_lines}\n"
        "    ]\n"
        "  }\n"
        "}\n"
    )


def build_converter(mesh_cfg: DictConfig) -> MeshConverter:
    """根据 mesh.converter 创建转换器"""
    if mesh_cfg.converter == "meshlab":
        return MeshlabConverter(
            command=list(mesh_cfg.command),
            failure_marker=mesh_cfg.get("failure_marker", DEFAULT_FAILURE_MARKER),
            check_exit_code=bool(mesh_cfg.get("check_exit_code", False)),
        )
    if mesh_cfg.converter == "trimesh":
        return TrimeshVrmlConverter()
    raise ValueError(f"Unknown mesh converter: {mesh_cfg.converter}")
