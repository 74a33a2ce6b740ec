#!/usr/bin/env python3
"""
prepare_env.py — 为已创建的项目准备集成测试环境

用法:
    python scripts/berry.py prepare-test [--dir demo]

执行后在项目目录中:
    cargo build && forge build    构建 Rust 工作区与合约
    e2e-test.sh                   设置可执行权限
    .env                          生成连接默认值 + 私钥占位（需手动填写）
"""

from __future__ import annotations

import os
import stat
from pathlib import Path
from typing import Callable

from berry_utils import FileOpError, PreconditionError, run_shell


def _make_executable(path: Path) -> None:
    if os.name == "nt":
        return
    try:
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    except OSError as e:
        raise FileOpError(f"设置可执行权限失败: {path}: {e}") from e


def render_env_file(test_env: dict) -> str:
    """生成 .env 内容：固定连接默认值 + 注释掉的私钥占位。"""
    lines = ["# berry 集成测试环境变量（由 prepare-test 自动生成）"]
    for key, value in test_env["defaults"].items():
        lines.append(f"export {key}={value}")
    lines.append("")
    lines.append("# 请填写部署账户私钥后取消注释（切勿提交到 Git）")
    lines.append(f"# export {test_env['secret_key']}=<your-private-key>")
    return "\n".join(lines) + "\n"


def prepare_test_env(
    config: dict,
    work_dir: Path | None = None,
    shell_runner: Callable[..., str] | None = None,
) -> Path:
    """构建项目并生成 .env，返回 .env 路径。

    本流程不创建项目目录，失败时不做任何清理。
    """
    shell_runner = shell_runner or run_shell
    test_env = config["test_env"]

    if work_dir is not None:
        if not work_dir.is_dir():
            raise PreconditionError(f"目录不存在: {work_dir}")
        project_dir = work_dir.resolve()
    else:
        project_dir = Path.cwd()

    entry_script = project_dir / test_env["entry_script"]
    if not entry_script.is_file():
        raise PreconditionError(
            f"未找到 {test_env['entry_script']}（{project_dir}）。"
            f"请在项目根目录下运行，或用 --dir 指定项目目录"
        )

    print(f"准备测试环境: {project_dir}")
    print()

    print(f"[1/3] 构建: {test_env['build_command']}")
    shell_runner(test_env["build_command"], cwd=project_dir)
    print("  构建通过")

    print(f"[2/3] 设置可执行权限: {test_env['entry_script']}")
    _make_executable(entry_script)

    env_path = project_dir / test_env["env_file"]
    print(f"[3/3] 生成: {test_env['env_file']}")
    try:
        env_path.write_text(render_env_file(test_env), encoding="utf-8")
    except OSError as e:
        raise FileOpError(f"写入失败: {env_path}: {e}") from e
    _make_executable(env_path)

    print()
    print("=" * 50)
    print("测试环境准备完成")
    print()
    print("下一步:")
    print(f"  1. 编辑 {test_env['env_file']}，填写 {test_env['secret_key']}")
    print(f"  2. source {test_env['env_file']}")
    print(f"  3. ./{test_env['entry_script']}")
    return env_path
