"""
数学工具函数 - 位姿转换和数值格式化
Simox 的属性都是字符串，数值统一保留三位小数
"""

from typing import Dict, Tuple

import numpy as np
from scipy.spatial.transform import Rotation


def format_number(x: float) -> str:
    """定点格式，固定三位小数，与 locale 无关"""
    return f"{float(x):.3f}"


def translation_attrs(x: float, y: float, z: float) -> Dict[str, str]:
    return {
        "x": format_number(x),
        "y": format_number(y),
        "z": format_number(z),
        "unitsLength": "m",
    }


def rotation_attrs(roll: float, pitch: float, yaw: float) -> Dict[str, str]:
    return {
        "roll": format_number(roll),
        "pitch": format_number(pitch),
        "yaw": format_number(yaw),
        "unitsAngle": "radian",
    }


def axis_attrs(x: float, y: float, z: float) -> Dict[str, str]:
    return {"x": format_number(x), "y": format_number(y), "z": format_number(z)}


def limit_attrs(lo: float, hi: float) -> Dict[str, str]:
    return {"unit": "radian", "lo": format_number(lo), "hi": format_number(hi)}


def matrix_to_xyz_rpy(matrix: np.ndarray) -> Tuple[Tuple[float, float, float], Tuple[float, float, float]]:
    """
    将 4x4 齐次变换拆分为平移和 roll/pitch/yaw

    URDF 的 rpy 是绕固定轴 X、Y、Z 依次旋转，对应 scipy 的小写 "xyz" (外旋)

    Args:
        matrix: (4, 4) 变换矩阵

    Returns:
        (xyz, rpy)
    """
    matrix = np.asarray(matrix, dtype=np.float64)
    if matrix.shape != (4, 4):
        raise ValueError(f"Expected a 4x4 transform, got shape {matrix.shape}")

    xyz = tuple(float(v) for v in matrix[:3, 3])
    rpy = tuple(float(v) for v in Rotation.from_matrix(matrix[:3, :3]).as_euler("xyz"))
    return xyz, rpy

