"""
转换流程测试
测试 mesh 委托、转换器、树生成、文档组装、序列化和命令行入口
"""
import unittest
import tempfile
import shutil
import sys
import xml.etree.ElementTree as ET
from pathlib import Path
from unittest import mock

import trimesh

# 添加src路径
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from urdf2simox.cli import main as cli_main
from urdf2simox.core.config import ConfigManager
from urdf2simox.core.errors import (
    IOFailure,
    MalformedMeshReference,
    MalformedOutputName,
    MeshConversionFailed,
    UnresolvedPackage,
    UnsupportedGeometry,
    UnsupportedJointType,
)
from urdf2simox.core.model import Joint, JointKind, KinematicModel, Link, MeshGeometry, OtherGeometry, Pose, Visual
from urdf2simox.geometry.converters import MeshConverter, MeshlabConverter, TrimeshVrmlConverter, build_converter
from urdf2simox.geometry.delegate import MeshDelegate
from urdf2simox.geometry.packages import PackageResolver
from urdf2simox.pipeline import convert_model
from urdf2simox.simox.assembler import DocumentAssembler, HandIdentity
from urdf2simox.simox.emitter import TreeEmitter
from urdf2simox.simox.writer import render_xml, write_xml

PKG = "dms_description"


class RecordingConverter(MeshConverter):
    """记录调用并写出占位文件的转换器"""

    def __init__(self):
        self.calls = []

    def convert(self, source, target):
        self.calls.append((source, target))
        Path(target).write_text("#VRML V2.0 utf8\n")


def mesh_ref(name):
    return f"package://{PKG}/meshes/{name}.STL"


def revolute(name, parent, child, axis=(0.0, 0.0, 1.0), lower=-1.57, upper=1.57):
    return Joint(name=name, kind=JointKind.ROTATIONAL, parent=parent, child=child,
                 origin=Pose((0.0, 0.0, 0.05)), axis=axis, lower=lower, upper=upper, type_name="revolute")


def fixed(name, parent, child):
    return Joint(name=name, kind=JointKind.FIXED, parent=parent, child=child, type_name="fixed")


def link(name, mesh=True):
    return Link(name, Visual(MeshGeometry(mesh_ref(name)), Pose((0.0, 0.0, 0.0), (0.0, 0.0, 1.0))) if mesh else None)


def two_link_model():
    return KinematicModel([link("base_link"), link("f_link")], [revolute("f_joint", "base_link", "f_link")], name="dms")


def hand_model():
    """palm 下面两根手指，关节声明顺序与名称顺序不同"""
    links = [link("palm"), link("thbase"), link("thproximal"), link("ffknuckle"), link("ffproximal"), link("fftip")]
    joints = [
        revolute("thj5", "palm", "thbase"),
        revolute("thj4", "thbase", "thproximal"),
        revolute("ffj4", "palm", "ffknuckle"),
        revolute("ffj3", "ffknuckle", "ffproximal"),
        fixed("fftip_joint", "ffproximal", "fftip"),
    ]
    return KinematicModel(links, joints, name="shadowhand")


class ConversionTestCase(unittest.TestCase):

    def setUp(self):
        self.temp_dir = Path(tempfile.mkdtemp())
        self.pkg_dir = self.temp_dir / PKG
        (self.pkg_dir / "meshes").mkdir(parents=True)
        self.out_dir = self.temp_dir / "out"
        self.out_dir.mkdir()

        self.converter = RecordingConverter()
        self.resolver = PackageResolver(explicit={PKG: str(self.pkg_dir)}, environ={}, ros_root=str(self.temp_dir / "no_ros"))
        self.delegate = MeshDelegate(str(self.out_dir), self.resolver, self.converter)

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)


class TestPackageResolver(ConversionTestCase):

    def test_explicit(self):
        self.assertEqual(self.resolver.resolve(PKG), str(self.pkg_dir.resolve()))

    def test_ros_package_path(self):
        resolver = PackageResolver(environ={"ROS_PACKAGE_PATH": str(self.temp_dir)}, ros_root=str(self.temp_dir / "no_ros"))
        self.assertEqual(resolver.resolve(PKG), str(self.pkg_dir.resolve()))

    def test_ament_prefix(self):
        share = self.temp_dir / "install" / "share" / "other_pkg"
        share.mkdir(parents=True)
        resolver = PackageResolver(environ={"AMENT_PREFIX_PATH": str(self.temp_dir / "install")},
                                   ros_root=str(self.temp_dir / "no_ros"))
        self.assertEqual(resolver.resolve("other_pkg"), str(share.resolve()))

    def test_unresolved(self):
        with self.assertRaises(UnresolvedPackage):
            self.resolver.resolve("unknown_pkg")

        resolver = PackageResolver(explicit={PKG: str(self.temp_dir / "missing")}, environ={})
        with self.assertRaises(UnresolvedPackage):
            resolver.resolve(PKG)


class TestMeshDelegate(ConversionTestCase):

    def test_convert(self):
        target = self.delegate.convert(f"package://{PKG}/meshes/base_link.STL")

        self.assertEqual(target, str(self.out_dir / "meshes" / "base_link.wrl"))
        self.assertTrue((self.out_dir / "meshes").is_dir())
        self.assertEqual(self.converter.calls,
                         [(f"{self.pkg_dir.resolve()}/meshes/base_link.STL", target)])

    def test_target_name_cut_at_first_dot(self):
        target = self.delegate.convert(f"package://{PKG}/meshes/finger.v2.dae")
        self.assertTrue(target.endswith("/meshes/finger.wrl"))

    def test_malformed_references(self):
        for reference in ("file:///tmp/base_link.STL", "meshes/base_link.STL", f"package://{PKG}",
                          f"package://{PKG}/", "package:///meshes/a.stl"):
            with self.assertRaises(MalformedMeshReference, msg=reference):
                self.delegate.convert(reference)

        # 不会调用外部工具
        self.assertEqual(self.converter.calls, [])

    def test_unresolved_package(self):
        with self.assertRaises(UnresolvedPackage):
            self.delegate.convert("package://unknown_pkg/meshes/a.stl")
        self.assertEqual(self.converter.calls, [])


class TestMeshlabConverter(ConversionTestCase):
    """用 python -c 模拟外部转换工具"""

    def setUp(self):
        super().setUp()
        self.source = str(self.pkg_dir / "meshes" / "a.stl")
        self.target = str(self.out_dir / "a.wrl")

    def _converter(self, script, **kwargs):
        return MeshlabConverter(command=[sys.executable, "-c", script, "{source}", "{target}"], **kwargs)

    def test_success(self):
        script = "import sys, pathlib; pathlib.Path(sys.argv[2]).write_text(sys.argv[1]); print('Mesh saved')"
        self._converter(script).convert(self.source, self.target)
        self.assertEqual(Path(self.target).read_text(), self.source)

    def test_failure_marker(self):
        script = "print('Opening a file'); print('Mesh a.stl loaded has 0 vn 12 vf')"
        with self.assertRaises(MeshConversionFailed):
            self._converter(script).convert(self.source, self.target)

    def test_failure_marker_kills_tool(self):
        script = "import time; print('loaded has 0 vn', flush=True); time.sleep(60)"
        with self.assertRaises(MeshConversionFailed):
            self._converter(script).convert(self.source, self.target)

    def test_exit_code(self):
        script = "import sys; sys.exit(3)"
        # 默认忽略退出码
        self._converter(script).convert(self.source, self.target)

        with self.assertRaises(MeshConversionFailed):
            self._converter(script, check_exit_code=True).convert(self.source, self.target)

    def test_missing_executable(self):
        converter = MeshlabConverter(command=[str(self.temp_dir / "no-such-tool"), "{source}", "{target}"])
        with self.assertRaises(MeshConversionFailed):
            converter.convert(self.source, self.target)

    def test_build_command(self):
        converter = MeshlabConverter()
        self.assertEqual(converter.build_command("/a.stl", "/b.wrl"),
                         ["meshlabserver", "-i", "/a.stl", "-o", "/b.wrl"])

    def test_build_converter(self):
        conf = ConfigManager.load()
        self.assertIsInstance(build_converter(conf.mesh), MeshlabConverter)
        conf = ConfigManager.from_dotlist(conf, ["mesh.converter=trimesh"])
        self.assertIsInstance(build_converter(conf.mesh), TrimeshVrmlConverter)


class TestTrimeshVrmlConverter(ConversionTestCase):

    def test_box(self):
        source = self.pkg_dir / "meshes" / "box.stl"
        trimesh.creation.box(extents=[0.1, 0.2, 0.3]).export(str(source))
        target = self.out_dir / "box.wrl"

        TrimeshVrmlConverter().convert(str(source), str(target))

        content = target.read_text()
        self.assertTrue(content.startswith("#VRML V2.0 utf8"))
        self.assertIn("IndexedFaceSet", content)
        self.assertIn("normalPerVertex TRUE", content)
        faces = [line for line in content.splitlines() if line.rstrip(",").endswith(", -1")]
        self.assertEqual(len(faces), 12)

    def test_unreadable(self):
        source = self.pkg_dir / "meshes" / "broken.stl"
        source.write_text("not a mesh")
        with self.assertRaises(MeshConversionFailed):
            TrimeshVrmlConverter().convert(str(source), str(self.out_dir / "broken.wrl"))


class TestTreeEmitter(ConversionTestCase):

    def test_preorder_declaration_order(self):
        nodes = TreeEmitter(hand_model(), self.delegate).emit()

        self.assertEqual([n.name for n in nodes], [
            "palm", "thj5", "thbase", "thj4", "thproximal",
            "ffj4", "ffknuckle", "ffj3", "ffproximal", "fftip_joint", "fftip",
        ])
        self.assertEqual([c.name for c in nodes[0].children], ["thj5", "ffj4"])

    def test_link_node(self):
        node = TreeEmitter(two_link_model(), self.delegate).emit()[0]
        target = str(self.out_dir / "meshes" / "base_link.wrl")

        self.assertEqual(node.visualization.file.path, target)
        self.assertEqual(node.collision_model.file.path, target)
        self.assertEqual(node.visualization.file.type, "Inventor")
        self.assertEqual(node.transform.rotation.yaw, 1.0)
        # 每个 link 只转换一次
        self.assertEqual(len(self.converter.calls), 2)

    def test_convert_per_role(self):
        TreeEmitter(two_link_model(), self.delegate, convert_per_role=True).emit()
        self.assertEqual(len(self.converter.calls), 4)

    def test_joint_nodes(self):
        model = hand_model()
        nodes = {n.name: n for n in TreeEmitter(model, self.delegate).emit()}

        ffj4 = nodes["ffj4"]
        self.assertEqual(ffj4.joint.type, "revolute")
        self.assertEqual((ffj4.joint.axis.x, ffj4.joint.axis.y, ffj4.joint.axis.z), (0.0, 0.0, 1.0))
        self.assertEqual((ffj4.joint.limits.lo, ffj4.joint.limits.hi), (-1.57, 1.57))
        self.assertEqual([c.name for c in ffj4.children], ["ffknuckle"])
        self.assertEqual(ffj4.transform.translation.z, 0.05)

        tip = nodes["fftip_joint"]
        self.assertEqual(tip.joint.type, "fixed")
        self.assertIsNone(tip.joint.axis)
        self.assertIsNone(tip.joint.limits)

    def test_unsupported_joint(self):
        links = [link("palm"), link("a"), link("b"), link("c")]
        joints = [
            Joint("j_slide", JointKind.UNSUPPORTED, "palm", "a", type_name="prismatic"),
            revolute("j_b", "a", "b"),
            revolute("j_c", "palm", "c"),
        ]
        model = KinematicModel(links, joints)

        with self.assertRaises(UnsupportedJointType):
            TreeEmitter(model, self.delegate).emit()

        # 只转换了 palm 的 mesh，后续分支没有生成
        self.assertEqual([Path(t).name for _, t in self.converter.calls], ["palm.wrl"])

    def test_unsupported_geometry(self):
        links = [Link("palm", Visual(OtherGeometry("box")))]
        with self.assertRaises(UnsupportedGeometry):
            TreeEmitter(KinematicModel(links, []), self.delegate).emit()

    def test_deep_chain(self):
        """很深的单链不受解释器递归深度限制"""
        depth = sys.getrecursionlimit() + 100
        links = [link(f"l{i}", mesh=False) for i in range(depth)]
        joints = [fixed(f"j{i}", f"l{i}", f"l{i + 1}") for i in range(depth - 1)]

        with self.assertLogs("urdf2simox.simox.emitter", level="WARNING"):
            nodes = TreeEmitter(KinematicModel(links, joints), self.delegate).emit()

        self.assertEqual(len(nodes), 2 * depth - 1)
        self.assertEqual([n.name for n in nodes[:4]], ["l0", "j0", "l1", "j1"])
        self.assertEqual(nodes[-1].name, f"l{depth - 1}")

    def test_missing_visual(self):
        model = KinematicModel([link("palm", mesh=False)], [])

        node = TreeEmitter(model, self.delegate).emit()[0]
        self.assertIsNone(node.transform)
        self.assertIsNone(node.visualization)
        self.assertIsNone(node.collision_model)

        with self.assertRaises(UnsupportedGeometry):
            TreeEmitter(model, self.delegate, missing_visual="error").emit()


class TestDocumentAssembler(ConversionTestCase):

    def test_hand_identity(self):
        hand = HandIdentity.from_filename("ShadowHand.xml")
        self.assertEqual(hand.upper, "SHADOWHAND")
        self.assertEqual(hand.base, "shadowhand_hand_base")
        self.assertEqual(hand.gcp, "shadowhand_hand_gcp")

        for name in ("hand", "dms.simox.xml", ".xml"):
            with self.assertRaises(MalformedOutputName):
                HandIdentity.from_filename(name)

    def test_malformed_name_before_model(self):
        with self.assertRaises(MalformedOutputName):
            DocumentAssembler(two_link_model(), self.delegate).assemble("hand")
        self.assertEqual(self.converter.calls, [])

    def test_two_link_scenario(self):
        robot = DocumentAssembler(two_link_model(), self.delegate).assemble("dms.xml")

        self.assertEqual(robot.type, "DMS")
        self.assertEqual(robot.root_node, "dms_hand_base")
        base, tcp, gcp = robot.nodes[:3]
        self.assertEqual([c.name for c in base.children], ["dms_hand_tcp", "dms_hand_gcp", "base_link"])
        self.assertIsNone(base.transform)
        self.assertEqual(tcp.comment, "Translation values were set manually!")
        self.assertIsNone(tcp.transform.rotation)
        self.assertEqual(gcp.transform.rotation.roll, 1.0)

        joint_nodes = [n for n in robot.nodes if n.joint is not None]
        self.assertEqual(len(joint_nodes), 1)
        element = joint_nodes[0].to_element()
        self.assertEqual(element.find("Joint/Axis").attrib, {"x": "0.000", "y": "0.000", "z": "1.000"})
        self.assertEqual(element.find("Joint/Limits").attrib, {"unit": "radian", "lo": "-1.570", "hi": "1.570"})

    def test_node_counts_and_references(self):
        model = hand_model()
        robot = DocumentAssembler(model, self.delegate).assemble("shadowhand.xml")

        # 3 个辅助节点 + N 个 link + N-1 个 joint
        self.assertEqual(len(robot.nodes), 3 + len(model.links) + len(model.joints))
        self.assertEqual(robot.dangling_references(), [])

    def test_endeffector(self):
        model = hand_model()
        robot = DocumentAssembler(model, self.delegate).assemble("shadowhand.xml")
        eef = robot.endeffector

        self.assertEqual((eef.name, eef.base, eef.tcp, eef.gcp),
                         ("SHADOWHAND", "shadowhand_hand_base", "shadowhand_hand_tcp", "shadowhand_hand_gcp"))
        sorted_names = ["ffj3", "ffj4", "fftip_joint", "thj4", "thj5"]
        self.assertEqual([n.name for n in eef.preshape.nodes], sorted_names)
        self.assertEqual(eef.preshape.nodes[0].attributes, {"unit": "radian", "value": "0.0"})
        self.assertEqual([n.name for n in eef.static.nodes], ["palm"])

        self.assertEqual([a.name for a in eef.actors], ["f", "t"])
        self.assertEqual([n.name for n in eef.actors[0].nodes],
                         ["ffknuckle", "ffproximal", "fftip", "ffj3", "ffj4", "fftip_joint"])
        self.assertEqual([n.name for n in eef.actors[1].nodes], ["thbase", "thproximal", "thj4", "thj5"])
        self.assertTrue(all(n.attributes == {"considerCollisions": "None"} for n in eef.actors[0].nodes))

        self.assertEqual(robot.node_set.name, "SHADOWHAND Joints")
        self.assertEqual([n.name for n in robot.node_set.nodes], sorted_names)

    def test_actor_links_sorted_by_name(self):
        """actor 中的 link 按名称排序，与声明顺序无关"""
        links = [link("palm"), link("fb"), link("fa")]
        joints = [revolute("fj2", "palm", "fb"), revolute("fj1", "palm", "fa")]
        robot = DocumentAssembler(KinematicModel(links, joints), self.delegate).assemble("dms.xml")

        actor = robot.endeffector.actors[0]
        self.assertEqual(actor.name, "f")
        self.assertEqual([n.name for n in actor.nodes], ["fa", "fb", "fj1", "fj2"])

    def test_custom_actor_key(self):
        robot = DocumentAssembler(hand_model(), self.delegate, key=lambda name: name[:2]).assemble("hand.xml")
        self.assertEqual([a.name for a in robot.endeffector.actors], ["ff", "th"])

    def test_configured_offsets(self):
        conf = ConfigManager.from_dotlist(ConfigManager.load(), ["hand.tcp.translation=[0.0,0.0,0.2]"])
        robot = DocumentAssembler(two_link_model(), self.delegate, conf).assemble("dms.xml")
        self.assertEqual(robot.nodes[1].transform.translation.z, 0.2)


class TestWriter(ConversionTestCase):

    def test_render(self):
        robot = DocumentAssembler(two_link_model(), self.delegate).assemble("dms.xml")
        content = render_xml(robot)

        self.assertTrue(content.startswith('<?xml version="1.0" encoding="utf-8"?>'))
        self.assertIn('\t<RobotNode name="dms_hand_base">', content)
        self.assertIn("<!--Translation values were set manually!-->", content)
        self.assertIn(f'<File type="Inventor">{self.out_dir / "meshes" / "base_link.wrl"}</File>', content)

        root = ET.fromstring(content.encode("utf-8"))
        self.assertEqual(root.tag, "Robot")
        self.assertEqual(root.get("Type"), "DMS")
        self.assertEqual(len(root.findall("RobotNode")), 3 + 2 + 1)
        self.assertEqual(len(root.findall("Endeffector")), 1)
        self.assertEqual(len(root.findall("RobotNodeSet")), 1)
        gcp = root.find("RobotNode[@name='dms_hand_gcp']/Transform/rollpitchyaw")
        self.assertEqual(gcp.attrib, {"roll": "1.000", "pitch": "0.000", "yaw": "0.000", "unitsAngle": "radian"})

    def test_io_failure(self):
        robot = DocumentAssembler(two_link_model(), self.delegate).assemble("dms.xml")
        with self.assertRaises(IOFailure):
            write_xml(robot, self.temp_dir / "no_such_dir" / "dms.xml")

    def test_failed_replace_keeps_existing_file(self):
        robot = DocumentAssembler(two_link_model(), self.delegate).assemble("dms.xml")
        target = self.out_dir / "dms.xml"
        target.write_text("previous")

        with mock.patch("urdf2simox.simox.writer.os.replace", side_effect=OSError("No space left on device")):
            with self.assertRaises(IOFailure):
                write_xml(robot, target)

        self.assertEqual(target.read_text(), "previous")
        self.assertEqual(sorted(p.name for p in self.out_dir.iterdir()), ["dms.xml", "meshes"])

    def test_write_replaces_file(self):
        robot = DocumentAssembler(two_link_model(), self.delegate).assemble("dms.xml")
        target = self.out_dir / "dms.xml"
        target.write_text("previous")

        write_xml(robot, target)

        self.assertEqual(target.read_text(encoding="utf-8"), render_xml(robot))
        self.assertFalse(any(p.name.endswith(".tmp") for p in self.out_dir.iterdir()))

    def test_convert_model(self):
        convert_model(two_link_model(), self.out_dir, "dms.xml", converter=self.converter, resolver=self.resolver)
        self.assertTrue((self.out_dir / "dms.xml").exists())

    def test_no_partial_output(self):
        model = KinematicModel([link("palm"), link("a")],
                               [Joint("j", JointKind.UNSUPPORTED, "palm", "a", type_name="floating")])
        with self.assertRaises(UnsupportedJointType):
            convert_model(model, self.out_dir, "dms.xml", converter=self.converter, resolver=self.resolver)
        self.assertFalse((self.out_dir / "dms.xml").exists())


class TestCli(ConversionTestCase):
    """端到端：URDF -> Simox XML，使用 trimesh 转换器"""

    def setUp(self):
        super().setUp()
        for name in ("base_link", "f_link"):
            trimesh.creation.box(extents=[0.02, 0.02, 0.04]).export(str(self.pkg_dir / "meshes" / f"{name}.stl"))

        self.urdf_path = self.temp_dir / "dms.urdf"
        self.urdf_path.write_text(f"""<?xml version="1.0"?>
<robot name="dms">
  <link name="base_link">
    <visual><geometry><mesh filename="package://{PKG}/meshes/base_link.stl"/></geometry></visual>
  </link>
  <link name="f_link">
    <visual><geometry><mesh filename="package://{PKG}/meshes/f_link.stl"/></geometry></visual>
  </link>
  <joint name="f_joint" type="revolute">
    <parent link="base_link"/>
    <child link="f_link"/>
    <axis xyz="0 0 1"/>
    <limit lower="-1.57" upper="1.57" effort="1" velocity="1"/>
  </joint>
</robot>
""")
        self.common = ["--set", "mesh.converter=trimesh", "--set", f"packages.{PKG}={self.pkg_dir}", "--log-level", "WARNING"]

    def test_end_to_end(self):
        status = cli_main([str(self.urdf_path), str(self.out_dir), "dms.xml"] + self.common)

        self.assertEqual(status, 0)
        root = ET.parse(self.out_dir / "dms.xml").getroot()
        self.assertEqual(root.get("Type"), "DMS")
        limits = root.find("RobotNode[@name='f_joint']/Joint/Limits")
        self.assertEqual((limits.get("lo"), limits.get("hi")), ("-1.570", "1.570"))
        self.assertTrue((self.out_dir / "meshes" / "base_link.wrl").exists())
        self.assertTrue((self.out_dir / "meshes" / "f_link.wrl").exists())

    def test_malformed_output_name(self):
        status = cli_main([str(self.urdf_path), str(self.out_dir), "hand"] + self.common)

        self.assertEqual(status, 1)
        self.assertEqual(list(self.out_dir.iterdir()), [])

    def test_invalid_config(self):
        status = cli_main([str(self.urdf_path), str(self.out_dir), "dms.xml", "--set", "mesh.converter=blender"])
        self.assertEqual(status, 2)

    def test_overrides_before_positionals(self):
        status = cli_main(self.common + [str(self.urdf_path), str(self.out_dir), "dms.xml"])

        self.assertEqual(status, 0)
        self.assertTrue((self.out_dir / "dms.xml").exists())

    def test_malformed_override(self):
        status = cli_main([str(self.urdf_path), str(self.out_dir), "dms.xml", "--set", "mesh.command=[meshlabserver"])

        self.assertEqual(status, 2)
        self.assertEqual(list(self.out_dir.iterdir()), [])

    def test_missing_output_dir(self):
        status = cli_main([str(self.urdf_path), str(self.temp_dir / "nope"), "dms.xml"] + self.common)
        self.assertEqual(status, 1)


def run_tests():
    """运行所有测试"""
    loader = unittest.TestLoader()
    suite = unittest.TestSuite()

    for case in (TestPackageResolver, TestMeshDelegate, TestMeshlabConverter, TestTrimeshVrmlConverter,
                 TestTreeEmitter, TestDocumentAssembler, TestWriter, TestCli):
        suite.addTests(loader.loadTestsFromTestCase(case))

    runner = unittest.TextTestRunner(verbosity=2)
    result = runner.run(suite)
    return result.wasSuccessful()


if __name__ == "__main__":
    print("🧪 Running urdf2simox Conversion Tests...")
    sys.exit(0 if run_tests() else 1)
