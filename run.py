"""
urdf2simox 运行入口 (无需安装)
用法: python run.py <urdf> <output_dir> <name>.xml [--config configs/default.yaml]
"""

import sys
from pathlib import Path

# 添加路径
sys.path.insert(0, str(Path(__file__).parent / "src"))

from urdf2simox.cli import main


if __name__ == "__main__":
    sys.exit(main())
