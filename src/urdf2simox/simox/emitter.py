"""
按先序生成 RobotNode
从根 link 出发深度优先遍历，link 节点和 joint 节点交替出现；
子关节按声明顺序处理，遇到第一个不支持的结构立即终止
"""

from typing import List, Optional, Tuple, Union

from ..core.errors import UnsupportedGeometry, UnsupportedJointType
from ..core.logger import get_logger
from ..core.model import Joint, JointKind, KinematicModel, Link, MeshGeometry, Pose
from ..geometry.delegate import MeshDelegate
from .document import (
    Axis,
    ChildRef,
    CollisionModel,
    JointPayload,
    Limits,
    MeshFile,
    RobotNode,
    RollPitchYaw,
    Transform,
    Translation,
    Visualization,
)

logger = get_logger(__name__)


def pose_to_transform(pose: Pose) -> Transform:
    return Transform(Translation(*pose.xyz), RollPitchYaw(*pose.rpy))


class TreeEmitter:
    """
    Args:
        model: 运动学模型
        mesh_delegate: mesh 委托
        file_type: <File type="..."> 的值
        missing_visual: 没有 visual 的 link 的处理方式，"skip" 只输出结构，"error" 报错
        convert_per_role: 为 Visualization 和 CollisionModel 分别调用一次转换
    """

    def __init__(self, model: KinematicModel, mesh_delegate: MeshDelegate, file_type: str = "Inventor",
                 missing_visual: str = "skip", convert_per_role: bool = False):
        self.model = model
        self.mesh_delegate = mesh_delegate
        self.file_type = file_type
        self.missing_visual = missing_visual
        self.convert_per_role = convert_per_role

    def emit(self, link_name: Optional[str] = None) -> List[RobotNode]:
        """从指定 link (默认根 link) 生成其整棵子树的节点，先序排列"""
        link = self.model.root_link if link_name is None else self.model.link(link_name)
        nodes: List[RobotNode] = []

        # 显式栈代替递归，子关节逆序入栈以保持声明顺序
        stack: List[Union[Link, Joint]] = [link]
        while stack:
            item = stack.pop()
            if isinstance(item, Link):
                node, child_joints = self._link_node(item)
                nodes.append(node)
                stack.extend(reversed(child_joints))
            else:
                nodes.append(self._joint_node(item))
                stack.append(self.model.link(item.child))
        return nodes

    def _link_node(self, link: Link) -> Tuple[RobotNode, List[Joint]]:
        node = RobotNode(name=link.name)
        visual = link.visual

        if visual is None:
            if self.missing_visual == "error":
                raise UnsupportedGeometry(f"Link '{link.name}' has no visual; MESH is the only supported geometry.")
            logger.warning(f"Link '{link.name}' has no visual, emitting it without geometry.")
        else:
            if not isinstance(visual.geometry, MeshGeometry):
                raise UnsupportedGeometry(
                    f"MESH is the only supported urdf::Geometry type (link '{link.name}' has {visual.geometry.kind})."
                )
            node.transform = pose_to_transform(visual.origin)

            filename = visual.geometry.filename
            visual_path = self.mesh_delegate.convert(filename)
            collision_path = self.mesh_delegate.convert(filename) if self.convert_per_role else visual_path
            node.visualization = Visualization(MeshFile(visual_path, self.file_type))
            node.collision_model = CollisionModel(MeshFile(collision_path, self.file_type))

        child_joints = self.model.child_joints(link.name)
        node.children = [ChildRef(joint.name) for joint in child_joints]
        return node, child_joints

    def _joint_node(self, joint: Joint) -> RobotNode:
        node = RobotNode(name=joint.name, transform=pose_to_transform(joint.origin))

        if joint.kind is JointKind.ROTATIONAL:
            node.joint = JointPayload.revolute(Axis(*joint.axis), Limits(joint.lower, joint.upper))
        elif joint.kind is JointKind.FIXED:
            node.joint = JointPayload.fixed()
        else:
            raise UnsupportedJointType(
                f"Only revolute and fixed joints are supported (joint '{joint.name}' is '{joint.type_name}')."
            )

        node.children = [ChildRef(joint.child)]
        return node
