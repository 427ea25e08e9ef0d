"""
错误类型定义
转换过程中的所有错误都是致命的：遇到第一个错误即终止整个转换
"""


class ConversionError(Exception):
    """转换错误基类"""


class MalformedOutputName(ConversionError):
    """输出文件名无法解析出手部名称 (应形如 dms.xml)"""


class EmptyModel(ConversionError):
    """运动学模型中没有任何 link"""


class MalformedModel(ConversionError):
    """运动学模型结构错误 (多个根节点、引用不存在的 link 等)"""


class UnresolvedPackage(ConversionError):
    """无法将包名解析为目录"""


class MalformedMeshReference(ConversionError):
    """mesh 路径不是 package://<pkg>/<path> 形式"""


class MeshConversionFailed(ConversionError):
    """外部 mesh 转换工具失败"""


class UnsupportedGeometry(ConversionError):
    """visual 几何体不是 mesh"""


class UnsupportedJointType(ConversionError):
    """关节类型既不是 revolute 也不是 fixed"""


class IOFailure(ConversionError):
    """输出文件写入失败"""
