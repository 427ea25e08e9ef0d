"""
统一日志管理模块
使用 Rich 提供美观的控制台输出
"""

import logging
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

ROOT_LOGGER_NAME = "urdf2simox"


class Logger:
    """统一日志管理器"""

    def __init__(self, name: str = ROOT_LOGGER_NAME, level: str = "INFO", log_file: Optional[str] = None):
        self.name = name
        self.level = getattr(logging, level.upper())
        self.log_file = Path(log_file) if log_file else None
        self.console = Console(stderr=True)

        # 创建 logger
        self.logger = logging.getLogger(name)
        self.logger.setLevel(self.level)

        # 移除现有的处理器
        self.logger.handlers.clear()

        # 添加 Rich 处理器到控制台
        rich_handler = RichHandler(
            console=self.console,
            show_time=True,
            show_level=True,
            show_path=False,
            markup=False
        )
        rich_handler.setLevel(self.level)
        self.logger.addHandler(rich_handler)

        # 如果指定了日志文件，添加文件处理器
        if self.log_file:
            self.log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(self.log_file, encoding='utf-8')
            file_handler.setLevel(self.level)
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            file_handler.setFormatter(formatter)
            self.logger.addHandler(file_handler)

    def get_logger(self) -> logging.Logger:
        """获取配置好的 logger 实例"""
        return self.logger


# 全局日志实例
_global_logger = None


def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> logging.Logger:
    """
    配置包级日志器 (重复调用会替换之前的处理器)

    Args:
        level: 日志级别
        log_file: 可选的日志文件路径

    Returns:
        包根 logger
    """
    global _global_logger
    _global_logger = Logger(ROOT_LOGGER_NAME, level, log_file)
    return _global_logger.get_logger()


def get_logger(name: str = ROOT_LOGGER_NAME) -> logging.Logger:
    """获取 logger；模块内使用 get_logger(__name__)，消息汇总到包根 logger"""
    if name != ROOT_LOGGER_NAME and not name.startswith(ROOT_LOGGER_NAME + "."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)
