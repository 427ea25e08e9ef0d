"""
转换流水线
加载模型 -> 组装文档 -> 写出 XML，所有错误以 ConversionError 向上传播
"""

from pathlib import Path
from typing import Optional, Union

from omegaconf import DictConfig

from .core.config import ConfigManager
from .core.logger import get_logger
from .core.model import KinematicModel, load_urdf
from .geometry.converters import MeshConverter, build_converter
from .geometry.delegate import MeshDelegate
from .geometry.packages import PackageResolver
from .simox.assembler import DocumentAssembler, HandIdentity
from .simox.document import Robot
from .simox.writer import write_xml

logger = get_logger(__name__)


def build_mesh_delegate(output_dir: Union[str, Path], conf: DictConfig,
                        converter: Optional[MeshConverter] = None,
                        resolver: Optional[PackageResolver] = None) -> MeshDelegate:
    """按配置创建 MeshDelegate，converter / resolver 可注入"""
    return MeshDelegate(
        output_dir=str(output_dir),
        resolver=resolver if resolver is not None else PackageResolver(explicit=dict(conf.get("packages") or {})),
        converter=converter if converter is not None else build_converter(conf.mesh),
        extension=conf.mesh.extension,
        subdir=conf.mesh.subdir,
    )


def convert_model(model: KinematicModel, output_dir: Union[str, Path], output_name: str,
                  conf: Optional[DictConfig] = None, converter: Optional[MeshConverter] = None,
                  resolver: Optional[PackageResolver] = None) -> Robot:
    """
    转换内存中的运动学模型并写出 <output_dir>/<output_name>

    文档完全在内存中生成后才写文件，失败时不会留下不完整的输出

    Args:
        model: 运动学模型
        output_dir: 输出目录 (必须已存在)
        output_name: 输出文件名，如 dms.xml
        conf: 配置，默认使用 ConfigManager.defaults()
        converter: 可选的 mesh 转换器
        resolver: 可选的包路径解析器

    Returns:
        生成的 Robot 文档
    """
    conf = conf if conf is not None else ConfigManager.defaults()
    delegate = build_mesh_delegate(output_dir, conf, converter=converter, resolver=resolver)
    robot = DocumentAssembler(model, delegate, conf).assemble(output_name)
    write_xml(robot, Path(output_dir) / output_name)
    return robot


def convert_urdf(urdf_source: Union[str, Path], output_dir: Union[str, Path], output_name: str,
                 conf: Optional[DictConfig] = None, converter: Optional[MeshConverter] = None,
                 resolver: Optional[PackageResolver] = None) -> Robot:
    """从 URDF 文件转换；输出文件名在解析 URDF 之前校验"""
    HandIdentity.from_filename(output_name)
    model = load_urdf(urdf_source)
    return convert_model(model, output_dir, output_name, conf=conf, converter=converter, resolver=resolver)
