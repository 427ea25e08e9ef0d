"""
文档组装
生成 base / tcp / gcp 辅助节点、Endeffector 模板和 RobotNodeSet，
并把 TreeEmitter 生成的 link/joint 节点拼接成完整的 Simox 文档
"""

from dataclasses import dataclass
from typing import List, Optional

from omegaconf import DictConfig

from ..core.config import ConfigManager
from ..core.errors import MalformedOutputName
from ..core.logger import get_logger
from ..core.model import KinematicModel
from ..geometry.delegate import MeshDelegate
from .actors import KeyFunction, actor_members, classify_actors, first_character
from .document import (
    Actor,
    ChildRef,
    Endeffector,
    NodeEntry,
    Preshape,
    Robot,
    RobotNode,
    RobotNodeSet,
    RollPitchYaw,
    Static,
    Transform,
    Translation,
)
from .emitter import TreeEmitter

logger = get_logger(__name__)

SIMOX_COMMENT = "This node is for Simox (e.g., GraspPlanner in Simox)!"
TEMPLATE_COMMENT = "This is just a template. Please set values manually!"
COLLISIONS_COMMENT = "Note that considerCollisions = None, Actors, or All!"
TCP_COMMENT = "Translation values were set manually!"
GCP_COMMENT = "Translation and rollpitchyaw values were set manually!"


@dataclass(frozen=True)
class HandIdentity:
    """由输出文件名 (如 dms.xml) 得到的手部名称"""
    name: str

    @classmethod
    def from_filename(cls, filename: str) -> "HandIdentity":
        parts = filename.split(".")
        if len(parts) != 2 or not parts[0]:
            raise MalformedOutputName(f"{filename} should be something like dms.xml or shadowhand.xml.")
        return cls(parts[0])

    @property
    def lower(self) -> str:
        return self.name.lower()

    @property
    def upper(self) -> str:
        return self.name.upper()

    @property
    def base(self) -> str:
        return f"{self.lower}_hand_base"

    @property
    def tcp(self) -> str:
        return f"{self.lower}_hand_tcp"

    @property
    def gcp(self) -> str:
        return f"{self.lower}_hand_gcp"


class DocumentAssembler:
    """
    Args:
        model: 运动学模型
        mesh_delegate: mesh 委托
        config: 转换配置，默认使用 ConfigManager.defaults()
        key: actor 分组策略
    """

    def __init__(self, model: KinematicModel, mesh_delegate: MeshDelegate, config: Optional[DictConfig] = None,
                 key: KeyFunction = first_character):
        self.model = model
        self.mesh_delegate = mesh_delegate
        self.config = config if config is not None else ConfigManager.defaults()
        self.key = key

    def assemble(self, output_filename: str) -> Robot:
        """
        Args:
            output_filename: 输出文件名，如 dms.xml

        Returns:
            完整的 Robot 文档
        """
        hand = HandIdentity.from_filename(output_filename)
        base_link = self.model.root_link.name
        logger.info(f"Assembling Simox robot '{hand.upper}' rooted at link '{base_link}'")

        robot = Robot(type=hand.upper, root_node=hand.base)
        robot.nodes.append(self._base_node(hand, base_link))
        robot.nodes.append(self._tcp_node(hand))
        robot.nodes.append(self._gcp_node(hand))

        emitter = TreeEmitter(
            self.model,
            self.mesh_delegate,
            file_type=self.config.mesh.file_type,
            missing_visual=self.config.conversion.get("missing_visual", "skip"),
            convert_per_role=bool(self.config.mesh.get("convert_per_role", False)),
        )
        robot.nodes.extend(emitter.emit())

        robot.endeffector = self._endeffector(hand, base_link)
        robot.node_set = self._joint_set(hand)
        return robot

    def _base_node(self, hand: HandIdentity, base_link: str) -> RobotNode:
        return RobotNode(
            name=hand.base,
            children=[ChildRef(hand.tcp), ChildRef(hand.gcp), ChildRef(base_link)],
        )

    def _tcp_node(self, hand: HandIdentity) -> RobotNode:
        tcp_cfg = self.config.hand.tcp
        return RobotNode(
            name=hand.tcp,
            comment=TCP_COMMENT,
            transform=Transform(Translation(*tcp_cfg.translation)),
        )

    def _gcp_node(self, hand: HandIdentity) -> RobotNode:
        gcp_cfg = self.config.hand.gcp
        return RobotNode(
            name=hand.gcp,
            comment=GCP_COMMENT,
            transform=Transform(Translation(*gcp_cfg.translation), RollPitchYaw(*gcp_cfg.rpy)),
        )

    def _endeffector(self, hand: HandIdentity, base_link: str) -> Endeffector:
        joint_names = [joint.name for joint in self.model.sorted_joints]
        link_names = [link.name for link in self.model.sorted_links]

        preshape = Preshape(
            name="Grasp Preshape",
            comment=TEMPLATE_COMMENT,
            nodes=[NodeEntry(name, {"unit": "radian", "value": "0.0"}) for name in joint_names],
        )
        static = Static([NodeEntry(base_link)])

        actors: List[Actor] = []
        for group in classify_actors(joint_names, self.key):
            members = actor_members(group, link_names, joint_names, self.key)
            actors.append(Actor(
                name=group,
                comments=[TEMPLATE_COMMENT, COLLISIONS_COMMENT],
                nodes=[NodeEntry(name, {"considerCollisions": "None"}) for name in members],
            ))
        logger.debug(f"Actor groups: {[actor.name for actor in actors]}")

        return Endeffector(
            name=hand.upper,
            base=hand.base,
            tcp=hand.tcp,
            gcp=hand.gcp,
            preshape=preshape,
            static=static,
            actors=actors,
            comment=SIMOX_COMMENT,
        )

    def _joint_set(self, hand: HandIdentity) -> RobotNodeSet:
        return RobotNodeSet(
            name=f"{hand.upper} Joints",
            comment=SIMOX_COMMENT,
            nodes=[NodeEntry(joint.name) for joint in self.model.sorted_joints],
        )
