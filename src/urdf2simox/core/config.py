"""
配置管理系统
使用 OmegaConf 合并默认配置、YAML 文件和命令行覆盖
"""
from pathlib import Path
from typing import List, Optional

from omegaconf import OmegaConf, DictConfig

from .logger import get_logger

logger = get_logger(__name__)

# 默认值取自原始转换工具
DEFAULT_CONFIG = {
    "mesh": {
        "converter": "meshlab",
        "command": ["meshlabserver", "-i", "{source}", "-o", "{target}"],
        "failure_marker": "loaded has 0 vn",
        "check_exit_code": False,
        "extension": ".wrl",
        "subdir": "meshes",
        "file_type": "Inventor",
        "convert_per_role": False,
    },
    "hand": {
        "tcp": {"translation": [-0.01, -0.035, 0.07]},
        "gcp": {"translation": [-0.01, -0.035, 0.07], "rpy": [1.0, 0.0, 0.0]},
    },
    "conversion": {
        "missing_visual": "skip",
    },
    "packages": {},
    "logging": {
        "level": "INFO",
        "file": None,
    },
}

SUPPORTED_CONVERTERS = ("meshlab", "trimesh")
MISSING_VISUAL_POLICIES = ("skip", "error")


class ConfigManager:
    """配置管理器 - 负责加载、验证和导出配置"""

    @staticmethod
    def defaults() -> DictConfig:
        return OmegaConf.create(DEFAULT_CONFIG)

    @staticmethod
    def load(config_path: Optional[str] = None) -> DictConfig:
        """
        加载配置文件并与默认配置合并

        Args:
            config_path: 配置文件路径，为 None 时只使用默认配置

        Returns:
            OmegaConf 配置对象
        """
        conf = ConfigManager.defaults()
        if config_path is None:
            return conf

        if not Path(config_path).exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        user_conf = OmegaConf.load(config_path)
        logger.debug(f"Loaded config overrides from {config_path}")
        return ConfigManager.merge_configs(conf, user_conf)

    @staticmethod
    def from_dotlist(conf: DictConfig, overrides: List[str]) -> DictConfig:
        """
        应用命令行形式的覆盖，例如 mesh.converter=trimesh

        Raises:
            ValueError: 覆盖项无法解析
        """
        if not overrides:
            return conf
        try:
            override_conf = OmegaConf.from_dotlist(list(overrides))
        except Exception as e:
            raise ValueError(f"Invalid config override {list(overrides)}: {e}") from e
        return ConfigManager.merge_configs(conf, override_conf)

    @staticmethod
    def validate_config(conf: DictConfig) -> bool:
        """
        验证配置文件的正确性

        Args:
            conf: 配置对象

        Returns:
            验证是否通过
        """
        required_fields = [
            "mesh.converter",
            "mesh.extension",
            "mesh.subdir",
            "mesh.file_type",
            "hand.tcp.translation",
            "hand.gcp.translation",
            "hand.gcp.rpy",
        ]

        for field in required_fields:
            if OmegaConf.select(conf, field) is None:
                logger.error(f"❌ Invalid config: missing required field {field}")
                return False

        if conf.mesh.converter not in SUPPORTED_CONVERTERS:
            logger.error(f"❌ Invalid config: mesh.converter must be one of {SUPPORTED_CONVERTERS}, got {conf.mesh.converter}")
            return False

        if conf.mesh.converter == "meshlab":
            command = list(conf.mesh.command or [])
            if not command:
                logger.error("❌ Invalid config: mesh.command is empty")
                return False
            joined = " ".join(str(arg) for arg in command)
            if "{source}" not in joined or "{target}" not in joined:
                logger.error("❌ Invalid config: mesh.command needs {source} and {target} placeholders")
                return False

        if not str(conf.mesh.extension).startswith("."):
            logger.error(f"❌ Invalid config: mesh.extension must start with '.', got {conf.mesh.extension}")
            return False

        for key, expected in (("hand.tcp.translation", 3), ("hand.gcp.translation", 3), ("hand.gcp.rpy", 3)):
            value = OmegaConf.select(conf, key)
            if len(value) != expected:
                logger.error(f"❌ Invalid config: {key} needs {expected} values, got {len(value)}")
                return False

        policy = OmegaConf.select(conf, "conversion.missing_visual", default="skip")
        if policy not in MISSING_VISUAL_POLICIES:
            logger.error(f"❌ Invalid config: conversion.missing_visual must be one of {MISSING_VISUAL_POLICIES}")
            return False

        return True

    @staticmethod
    def merge_configs(base_config: DictConfig, override_config: DictConfig) -> DictConfig:
        """
        合并两个配置对象，后面的覆盖前面的

        Args:
            base_config: 基础配置
            override_config: 覆盖配置

        Returns:
            合并后的配置
        """
        return OmegaConf.merge(base_config, override_config)

    @staticmethod
    def save_config(conf: DictConfig, path: str):
        """保存配置到文件"""
        OmegaConf.save(conf, path)
