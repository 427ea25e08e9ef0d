"""
Simox XML 序列化
"""

import os
import tempfile
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Union
from xml.dom.minidom import parseString

from ..core.errors import IOFailure
from ..core.logger import get_logger
from .document import Robot

logger = get_logger(__name__)


def render_xml(robot: Robot) -> str:
    """
    将文档渲染为带 tab 缩进的 XML 字符串

    Args:
        robot: Robot 文档

    Returns:
        XML 文本
    """
    xml_str = ET.tostring(robot.to_element(), encoding="utf-8").decode("utf-8")

    dom = parseString(xml_str)
    pretty_xml = dom.toprettyxml(indent="\t", encoding="utf-8").decode("utf-8")

    # 去掉空行
    return "\n".join(line for line in pretty_xml.splitlines() if line.strip()) + "\n"


def write_xml(robot: Robot, file_path: Union[str, Path]) -> Path:
    """
    写入文件；不创建目录，任何 I/O 错误都是致命的

    先写同目录下的临时文件再 os.replace，失败时目标文件保持原样
    """
    file_path = Path(file_path)
    content = render_xml(robot)
    tmp_path = None
    try:
        with tempfile.NamedTemporaryFile("w", encoding="utf-8", dir=file_path.parent,
                                         prefix=f".{file_path.name}.", suffix=".tmp", delete=False) as f:
            tmp_path = Path(f.name)
            f.write(content)
        os.chmod(tmp_path, 0o644)
        os.replace(tmp_path, file_path)
    except OSError as e:
        if tmp_path is not None:
            tmp_path.unlink(missing_ok=True)
        raise IOFailure(f"Failed to write {file_path}: {e}") from e

    logger.info(f"Wrote Simox XML to {file_path}")
    return file_path
