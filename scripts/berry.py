#!/usr/bin/env python3
"""
berry.py — RISC Zero + Foundry 项目脚手架命令行

用法:
    # 从模板创建新项目
    python scripts/berry.py create-project demo

    # 在项目目录中准备集成测试环境
    python scripts/berry.py prepare-test --dir demo

    # 使用自定义配置（覆盖模板仓库、分支、子模块等）
    python scripts/berry.py --config berry-config.yaml create-project demo
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

# ── 脚本目录导入 ──────────────────────────────────────────
sys.path.insert(0, str(Path(__file__).resolve().parent))
from berry_utils import BerryError, load_berry_config
from bootstrap import create_project
from prepare_env import prepare_test_env

BANNER = r"""
    ____
   / __ )___  ____________  __
  / __  / _ \/ ___/ ___/ / / /
 / /_/ /  __/ /  / /  / /_/ /
/_____/\___/_/  /_/   \__, /
                     /____/
"""


def cmd_create_project(args: argparse.Namespace, config: dict) -> bool:
    return create_project(
        args.name,
        config,
        verbose=args.verbose,
        check_toolchain=not args.skip_toolchain_check,
    )


def cmd_prepare_test(args: argparse.Namespace, config: dict) -> bool:
    work_dir = Path(args.dir) if args.dir else None
    prepare_test_env(config, work_dir)
    return True


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="berry",
        description=f"{BANNER}\nRISC Zero + Foundry 项目脚手架工具",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--config", help="YAML 配置覆盖文件（默认读取 $BERRY_CONFIG）")
    parser.add_argument("--verbose", action="store_true", help="输出详细日志")
    sub = parser.add_subparsers(dest="command", required=True)

    create = sub.add_parser("create-project", help="从模板仓库创建新项目")
    create.add_argument("name", help="项目名（同时作为目录名，不能已存在）")
    create.add_argument(
        "--skip-toolchain-check", action="store_true",
        help="跳过 cargo / forge / cargo-risczero 版本检测",
    )
    create.set_defaults(func=cmd_create_project)

    prep = sub.add_parser("prepare-test", help="构建项目并生成集成测试 .env")
    prep.add_argument("--dir", help="项目目录（默认当前目录）")
    prep.set_defaults(func=cmd_prepare_test)
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        config = load_berry_config(Path(args.config) if args.config else None)
        ok = args.func(args, config)
    except BerryError as e:
        print(f"[!!] ERROR: {e}")
        return 1
    if ok:
        print("[OK] 完成")
        return 0
    print("[!!] 失败")
    return 1


if __name__ == "__main__":
    sys.exit(main())
