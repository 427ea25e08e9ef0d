"""
运动学模型
转换引擎的只读输入：link / joint 组成的树，以及基于 yourdfpy 的 URDF 加载器
"""

import enum
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

import numpy as np

from .errors import EmptyModel, MalformedModel
from .logger import get_logger
from .math_utils import matrix_to_xyz_rpy

logger = get_logger(__name__)

Vector3 = Tuple[float, float, float]


@dataclass(frozen=True)
class Pose:
    """位置 (m) + roll/pitch/yaw (rad)"""
    xyz: Vector3 = (0.0, 0.0, 0.0)
    rpy: Vector3 = (0.0, 0.0, 0.0)

    @classmethod
    def from_matrix(cls, matrix: Optional[np.ndarray]) -> "Pose":
        if matrix is None:
            return cls()
        xyz, rpy = matrix_to_xyz_rpy(matrix)
        return cls(xyz=xyz, rpy=rpy)


@dataclass(frozen=True)
class MeshGeometry:
    filename: str


@dataclass(frozen=True)
class OtherGeometry:
    """box / cylinder / sphere 等非 mesh 几何体"""
    kind: str


Geometry = Union[MeshGeometry, OtherGeometry]


@dataclass(frozen=True)
class Visual:
    geometry: Geometry
    origin: Pose = field(default_factory=Pose)


@dataclass(frozen=True)
class Link:
    name: str
    visual: Optional[Visual] = None


class JointKind(enum.Enum):
    ROTATIONAL = "revolute"
    FIXED = "fixed"
    UNSUPPORTED = "unsupported"

    @classmethod
    def from_urdf_type(cls, type_name: str) -> "JointKind":
        if type_name == "revolute":
            return cls.ROTATIONAL
        if type_name == "fixed":
            return cls.FIXED
        return cls.UNSUPPORTED


@dataclass(frozen=True)
class Joint:
    name: str
    kind: JointKind
    parent: str
    child: str
    origin: Pose = field(default_factory=Pose)
    axis: Vector3 = (1.0, 0.0, 0.0)
    lower: float = 0.0
    upper: float = 0.0
    # 原始 URDF 类型名，用于报错
    type_name: str = ""


class KinematicModel:
    """
    运动学树

    - links 保持声明顺序
    - child_joints(link) 保持每个 link 下关节的声明顺序 (递归遍历用)
    - sorted_joints 按名称排序一次 (preshape / RobotNodeSet 等平铺列表用)
    - sorted_links 按名称排序一次 (actor 成员列表用)
    """

    def __init__(self, links: List[Link], joints: List[Joint], name: str = ""):
        if not links:
            raise EmptyModel(f"There are no links in robot model '{name}'.")

        self.name = name
        self.links = list(links)
        self.joints = list(joints)

        self._links: Dict[str, Link] = {}
        for link in self.links:
            if link.name in self._links:
                raise MalformedModel(f"Duplicate link name '{link.name}'.")
            self._links[link.name] = link

        self._child_joints: Dict[str, List[Joint]] = {link.name: [] for link in self.links}
        parent_of: Dict[str, str] = {}
        joint_names = set()
        for joint in self.joints:
            if joint.name in joint_names:
                raise MalformedModel(f"Duplicate joint name '{joint.name}'.")
            joint_names.add(joint.name)

            for role, link_name in (("parent", joint.parent), ("child", joint.child)):
                if link_name not in self._links:
                    raise MalformedModel(f"Joint '{joint.name}' references unknown {role} link '{link_name}'.")
            if joint.child in parent_of:
                raise MalformedModel(
                    f"Link '{joint.child}' has two parent joints: '{parent_of[joint.child]}' and '{joint.name}'."
                )
            parent_of[joint.child] = joint.name
            self._child_joints[joint.parent].append(joint)

        roots = [link.name for link in self.links if link.name not in parent_of]
        if len(roots) != 1:
            raise MalformedModel(f"Expected exactly one root link, found {len(roots)}: {roots}")
        self.root_link = self._links[roots[0]]

        # 每个非根 link 恰好有一个父关节且只有一个根，剩余的可能性只有环
        reachable = self._count_reachable(self.root_link.name)
        if reachable != len(self.links):
            raise MalformedModel("Links and joints do not form a single tree (cycle detected).")

        self.sorted_joints = sorted(self.joints, key=lambda j: j.name)
        self.sorted_links = sorted(self.links, key=lambda link: link.name)

    def _count_reachable(self, root: str) -> int:
        count = 0
        stack = [root]
        while stack:
            name = stack.pop()
            count += 1
            stack.extend(joint.child for joint in self._child_joints[name])
        return count

    def link(self, name: str) -> Link:
        return self._links[name]

    def child_joints(self, link_name: str) -> List[Joint]:
        return list(self._child_joints[link_name])

    def __repr__(self):
        return f"KinematicModel(name={self.name!r}, links={len(self.links)}, joints={len(self.joints)}, root={self.root_link.name!r})"


def _convert_visual(link) -> Optional[Visual]:
    # 与原始工具一致，只使用第一个 <visual>
    if not link.visuals:
        return None
    visual = link.visuals[0]
    geometry = visual.geometry
    if geometry is not None and geometry.mesh is not None:
        geom: Geometry = MeshGeometry(filename=geometry.mesh.filename)
    else:
        kind = "unknown"
        if geometry is not None:
            for candidate in ("box", "cylinder", "sphere"):
                if getattr(geometry, candidate, None) is not None:
                    kind = candidate
                    break
        geom = OtherGeometry(kind=kind)
    return Visual(geometry=geom, origin=Pose.from_matrix(visual.origin))


def _convert_joint(joint) -> Joint:
    kind = JointKind.from_urdf_type(joint.type)
    axis = joint.axis if joint.axis is not None else (1.0, 0.0, 0.0)
    lower = upper = 0.0
    if joint.limit is not None:
        lower = joint.limit.lower if joint.limit.lower is not None else 0.0
        upper = joint.limit.upper if joint.limit.upper is not None else 0.0
    return Joint(
        name=joint.name,
        kind=kind,
        parent=joint.parent,
        child=joint.child,
        origin=Pose.from_matrix(joint.origin),
        axis=tuple(float(v) for v in axis),
        lower=float(lower),
        upper=float(upper),
        type_name=joint.type,
    )


def load_urdf(source: Union[str, Path]) -> KinematicModel:
    """
    从 URDF 文件构建运动学模型

    Args:
        source: URDF 文件路径，"-" 表示从标准输入读取

    Returns:
        KinematicModel
    """
    import yourdfpy

    load_kwargs = dict(build_scene_graph=False, build_collision_scene_graph=False,
                       load_meshes=False, load_collision_meshes=False)
    try:
        if str(source) == "-":
            urdf = yourdfpy.URDF.load(sys.stdin.buffer, **load_kwargs)
        else:
            path = Path(source)
            if not path.exists():
                raise FileNotFoundError(f"URDF file not found: {path}")
            urdf = yourdfpy.URDF.load(str(path), **load_kwargs)
    except Exception as e:
        raise MalformedModel(f"Failed to parse urdf file {source}: {e}") from e

    robot = urdf.robot
    links = [Link(name=link.name, visual=_convert_visual(link)) for link in robot.links]
    joints = [_convert_joint(joint) for joint in robot.joints]

    model = KinematicModel(links, joints, name=robot.name)
    logger.info(f"Loaded URDF '{robot.name}': {len(links)} links, {len(joints)} joints, root '{model.root_link.name}'")
    return model
