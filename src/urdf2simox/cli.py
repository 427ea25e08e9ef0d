"""
命令行入口
urdf2simox URDF OUTPUT_DIR OUTPUT_NAME
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from omegaconf import OmegaConf

from .core.config import ConfigManager
from .core.errors import ConversionError
from .core.logger import setup_logging
from .pipeline import convert_urdf


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="urdf2simox",
        description="Convert a hand description in URDF format to Simox XML.",
    )
    parser.add_argument("urdf", help="URDF file path, or '-' to read from stdin")
    parser.add_argument("output_dir", help="Existing output directory (meshes go to <output_dir>/meshes)")
    parser.add_argument("output_name", help="Output file name, e.g. dms.xml or shadowhand.xml")
    parser.add_argument("--config", default=None, help="YAML config merged over the defaults")
    parser.add_argument("--set", dest="overrides", action="append", default=[], metavar="KEY=VALUE",
                        help="Config override, repeatable, e.g. --set mesh.converter=trimesh")
    parser.add_argument("--log-level", default=None, help="Overrides logging.level")
    parser.add_argument("--log-file", default=None, help="Overrides logging.file")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        conf = ConfigManager.load(args.config)
    except FileNotFoundError as e:
        setup_logging(args.log_level or "INFO").error(f"❌ {e}")
        return 2
    try:
        conf = ConfigManager.from_dotlist(conf, args.overrides)
    except ValueError as e:
        setup_logging(args.log_level or "INFO").error(f"❌ {e}")
        return 2

    level = args.log_level or OmegaConf.select(conf, "logging.level", default="INFO")
    log_file = args.log_file or OmegaConf.select(conf, "logging.file", default=None)
    logger = setup_logging(level, log_file)

    if not ConfigManager.validate_config(conf):
        return 2

    output_dir = Path(args.output_dir)
    if not output_dir.is_dir():
        logger.error(f"❌ Output directory does not exist: {output_dir}")
        return 1

    logger.info(f"🚀 Converting {args.urdf} -> {output_dir / args.output_name}")
    try:
        robot = convert_urdf(args.urdf, output_dir, args.output_name, conf=conf)
    except ConversionError as e:
        logger.error(f"❌ {type(e).__name__}: {e}")
        return 1

    logger.info(f"✅ Done: {len(robot.nodes)} robot nodes, {len(robot.endeffector.actors)} actors.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
