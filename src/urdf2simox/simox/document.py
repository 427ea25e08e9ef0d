"""
Simox 机器人文档模型
用一组固定的节点类型表示输出文档，每个类型通过 to_element() 生成 ElementTree 元素
"""

import xml.etree.ElementTree as ET
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..core.math_utils import axis_attrs, limit_attrs, rotation_attrs, translation_attrs

REVOLUTE = "revolute"
FIXED = "fixed"


def _element(tag: str, attrib: Optional[Dict[str, str]] = None, comments: Optional[List[str]] = None) -> ET.Element:
    element = ET.Element(tag, attrib or {})
    for comment in comments or []:
        element.append(ET.Comment(comment))
    return element


@dataclass
class Translation:
    x: float
    y: float
    z: float

    def to_element(self) -> ET.Element:
        return _element("Translation", translation_attrs(self.x, self.y, self.z))


@dataclass
class RollPitchYaw:
    roll: float
    pitch: float
    yaw: float

    def to_element(self) -> ET.Element:
        return _element("rollpitchyaw", rotation_attrs(self.roll, self.pitch, self.yaw))


@dataclass
class Transform:
    translation: Translation
    rotation: Optional[RollPitchYaw] = None

    def to_element(self) -> ET.Element:
        element = _element("Transform")
        element.append(self.translation.to_element())
        if self.rotation is not None:
            element.append(self.rotation.to_element())
        return element


@dataclass
class ChildRef:
    name: str

    def to_element(self) -> ET.Element:
        return _element("Child", {"name": self.name})


@dataclass
class MeshFile:
    path: str
    type: str = "Inventor"

    def to_element(self) -> ET.Element:
        element = _element("File", {"type": self.type})
        element.text = self.path
        return element


@dataclass
class Visualization:
    file: MeshFile
    enable: bool = True

    def to_element(self) -> ET.Element:
        element = _element("Visualization", {"enable": "true" if self.enable else "false"})
        element.append(self.file.to_element())
        return element


@dataclass
class CollisionModel:
    file: MeshFile

    def to_element(self) -> ET.Element:
        element = _element("CollisionModel")
        element.append(self.file.to_element())
        return element


@dataclass
class Axis:
    x: float
    y: float
    z: float

    def to_element(self) -> ET.Element:
        return _element("Axis", axis_attrs(self.x, self.y, self.z))


@dataclass
class Limits:
    lo: float
    hi: float

    def to_element(self) -> ET.Element:
        return _element("Limits", limit_attrs(self.lo, self.hi))


@dataclass
class JointPayload:
    """<Joint type="revolute|fixed">，revolute 带 Axis 和 Limits"""
    type: str
    axis: Optional[Axis] = None
    limits: Optional[Limits] = None

    @classmethod
    def revolute(cls, axis: Axis, limits: Limits) -> "JointPayload":
        return cls(REVOLUTE, axis, limits)

    @classmethod
    def fixed(cls) -> "JointPayload":
        return cls(FIXED)

    def to_element(self) -> ET.Element:
        element = _element("Joint", {"type": self.type})
        if self.axis is not None:
            element.append(self.axis.to_element())
        if self.limits is not None:
            element.append(self.limits.to_element())
        return element


@dataclass
class RobotNode:
    name: str
    comment: Optional[str] = None
    transform: Optional[Transform] = None
    visualization: Optional[Visualization] = None
    collision_model: Optional[CollisionModel] = None
    joint: Optional[JointPayload] = None
    children: List[ChildRef] = field(default_factory=list)

    def to_element(self) -> ET.Element:
        element = _element("RobotNode", {"name": self.name}, [self.comment] if self.comment else None)
        for part in (self.transform, self.visualization, self.collision_model, self.joint):
            if part is not None:
                element.append(part.to_element())
        for child in self.children:
            element.append(child.to_element())
        return element


@dataclass
class NodeEntry:
    """<Node name="..." .../>，额外属性按插入顺序输出"""
    name: str
    attributes: Dict[str, str] = field(default_factory=dict)

    def to_element(self) -> ET.Element:
        return _element("Node", {"name": self.name, **self.attributes})


@dataclass
class Preshape:
    name: str
    nodes: List[NodeEntry] = field(default_factory=list)
    comment: Optional[str] = None

    def to_element(self) -> ET.Element:
        element = _element("Preshape", {"name": self.name}, [self.comment] if self.comment else None)
        element.extend(node.to_element() for node in self.nodes)
        return element


@dataclass
class Static:
    nodes: List[NodeEntry] = field(default_factory=list)

    def to_element(self) -> ET.Element:
        element = _element("Static")
        element.extend(node.to_element() for node in self.nodes)
        return element


@dataclass
class Actor:
    name: str
    nodes: List[NodeEntry] = field(default_factory=list)
    comments: List[str] = field(default_factory=list)

    def to_element(self) -> ET.Element:
        element = _element("Actor", {"name": self.name}, self.comments)
        element.extend(node.to_element() for node in self.nodes)
        return element


@dataclass
class Endeffector:
    name: str
    base: str
    tcp: str
    gcp: str
    preshape: Preshape
    static: Static
    actors: List[Actor] = field(default_factory=list)
    comment: Optional[str] = None

    def to_element(self) -> ET.Element:
        element = _element(
            "Endeffector",
            {"name": self.name, "base": self.base, "tcp": self.tcp, "gcp": self.gcp},
            [self.comment] if self.comment else None,
        )
        element.append(self.preshape.to_element())
        element.append(self.static.to_element())
        element.extend(actor.to_element() for actor in self.actors)
        return element


@dataclass
class RobotNodeSet:
    name: str
    nodes: List[NodeEntry] = field(default_factory=list)
    comment: Optional[str] = None

    def to_element(self) -> ET.Element:
        element = _element("RobotNodeSet", {"name": self.name}, [self.comment] if self.comment else None)
        element.extend(node.to_element() for node in self.nodes)
        return element


@dataclass
class Robot:
    """文档根节点 <Robot Type="..." RootNode="...">"""
    type: str
    root_node: str
    nodes: List[RobotNode] = field(default_factory=list)
    endeffector: Optional[Endeffector] = None
    node_set: Optional[RobotNodeSet] = None

    def to_element(self) -> ET.Element:
        element = _element("Robot", {"Type": self.type, "RootNode": self.root_node})
        element.extend(node.to_element() for node in self.nodes)
        if self.endeffector is not None:
            element.append(self.endeffector.to_element())
        if self.node_set is not None:
            element.append(self.node_set.to_element())
        return element

    def defined_names(self) -> Counter:
        """RobotNode 名称 -> 定义次数"""
        return Counter(node.name for node in self.nodes)

    def referenced_names(self) -> List[str]:
        names = [self.root_node]
        for node in self.nodes:
            names.extend(child.name for child in node.children)
        if self.endeffector is not None:
            eef = self.endeffector
            names.extend([eef.base, eef.tcp, eef.gcp])
            names.extend(entry.name for entry in eef.preshape.nodes)
            names.extend(entry.name for entry in eef.static.nodes)
            for actor in eef.actors:
                names.extend(entry.name for entry in actor.nodes)
        if self.node_set is not None:
            names.extend(entry.name for entry in self.node_set.nodes)
        return names

    def dangling_references(self) -> List[str]:
        """所有未被恰好定义一次的引用名称 (按首次出现顺序去重)"""
        defined = self.defined_names()
        dangling = []
        for name in self.referenced_names():
            if defined.get(name, 0) != 1 and name not in dangling:
                dangling.append(name)
        return dangling
