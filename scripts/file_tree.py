#!/usr/bin/env python3
"""
file_tree.py — 项目目录内的遍历 / 移动 / 删除操作

所有操作在出错时抛出 FileOpError（消息中包含出错路径），不静默跳过。
"""

from __future__ import annotations

import os
import shutil
from pathlib import Path
from typing import Iterator

from berry_utils import FileOpError

# 遍历时不进入的目录（版本控制元数据、子模块、构建产物）
SKIP_DIRS = {".git", "lib", "target"}


def _raise_walk_error(err: OSError) -> None:
    raise FileOpError(f"无法读取目录: {err.filename}: {err.strerror}") from err


def iter_files(root: Path, filename: str) -> Iterator[Path]:
    """递归查找 root 下所有名为 filename 的文件（惰性，每次调用重新遍历）。

    任一目录无法读取即中止整个遍历。
    """
    for dirpath, dirnames, filenames in os.walk(root, onerror=_raise_walk_error):
        dirnames[:] = sorted(d for d in dirnames if d not in SKIP_DIRS)
        if filename in filenames:
            yield Path(dirpath) / filename


def move_path(src: Path, dst: Path) -> None:
    """移动文件或目录。目标已存在时报错，不覆盖。"""
    if dst.exists():
        raise FileOpError(f"移动目标已存在: {src} -> {dst}")
    try:
        shutil.move(str(src), str(dst))
    except OSError as e:
        raise FileOpError(f"移动失败: {src} -> {dst}: {e}") from e


def remove_tree(path: Path) -> None:
    try:
        shutil.rmtree(path)
    except OSError as e:
        raise FileOpError(f"删除目录失败: {path}: {e}") from e


def remove_file(path: Path) -> None:
    try:
        path.unlink()
    except OSError as e:
        raise FileOpError(f"删除文件失败: {path}: {e}") from e


def relocate_example(project_dir: Path, example_path: str) -> list[str]:
    """把克隆下来的示例目录提升为项目根目录，返回执行动作的描述列表。

    example_path 形如 "examples/erc20-counter"。顺序不可调换：
      1. examples/<name> 上移为 <name>
      2. 删除 examples/
      3. 删除根目录下所有普通文件（模板脚手架遗留）
      4. <name>/ 下所有条目上移到根目录
      5. 删除已清空的 <name>/

    前置约定：稀疏检出后模板根目录只剩普通文件和 examples/，
    因此第 3 步不会误删示例自身的文件，第 4 步也不会与模板目录冲突。
    示例目录不存在时，第 1、4、5 步什么也不做。
    """
    actions = []
    nested = project_dir / example_path
    parent = nested.parent
    lifted = project_dir / nested.name

    if nested.is_dir():
        move_path(nested, lifted)
        actions.append(f"上移 {example_path} -> {nested.name}")

    if parent != project_dir and parent.exists():
        remove_tree(parent)
        actions.append(f"删除 {parent.relative_to(project_dir).as_posix()}/")

    for entry in sorted(project_dir.iterdir()):
        if entry.is_file() or entry.is_symlink():
            remove_file(entry)
            actions.append(f"删除模板文件 {entry.name}")

    if lifted.is_dir():
        for entry in sorted(lifted.iterdir()):
            move_path(entry, project_dir / entry.name)
        remove_tree(lifted)
        actions.append(f"提升 {nested.name}/ 内容到项目根目录")

    return actions
