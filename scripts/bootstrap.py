#!/usr/bin/env python3
"""
bootstrap.py — 从模板仓库创建新的 RISC Zero + Foundry 项目

用法:
    python scripts/berry.py create-project demo

执行步骤（严格顺序，任一步失败即中止并删除已创建的项目目录）:
    1. 工具链检测           cargo / forge / cargo-risczero
    2. 克隆模板仓库         git clone --recursive
    3. 切换分支             git checkout <branch>
    4. 稀疏检出             只保留 examples/<name>
    5. 提升示例目录         示例内容移到项目根目录
    6. 改写 Cargo.toml      本地 path 依赖 → git 依赖
    7. 改写 foundry.toml    libs 指向 lib/
    8. 建立子模块           lib/forge-std, lib/openzeppelin-contracts, lib/risc0-ethereum
    9. 改写 remappings.txt  指向本地子模块
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from berry_utils import (
    BerryError,
    PreconditionError,
    probe_toolchain,
    run_command,
)
from file_tree import iter_files, relocate_example, remove_tree
from rewrite_rules import (
    build_config_rules,
    manifest_rules,
    remapping_rules,
    rewrite_file,
)


# ============================================================
# 数据类
# ============================================================

@dataclass
class StepResult:
    status: str       # 'applied' | 'skipped' | 'error'
    message: str
    changes: int = 0


@dataclass
class BootstrapContext:
    project_name: str
    project_dir: Path
    config: dict
    runner: Callable[..., str] = run_command
    verbose: bool = False
    check_toolchain: bool = True
    results: list[tuple[str, StepResult]] = field(default_factory=list)


# ============================================================
# 工具函数
# ============================================================

def _log(ctx: BootstrapContext, msg: str) -> None:
    """verbose 模式下的详细日志。"""
    if ctx.verbose:
        print(f"  [VERBOSE] {msg}")


def _git(ctx: BootstrapContext, *args: str, cwd: Path | None = None) -> str:
    _log(ctx, f"git {' '.join(args)}" + (f"  (cwd={cwd})" if cwd else ""))
    return ctx.runner("git", list(args), cwd=cwd)


def validate_project_name(name: str, base_dir: Path) -> Path:
    """校验项目名：去空白后非空，且目标路径不存在。返回项目目录绝对路径。"""
    name = name.strip()
    if not name:
        raise PreconditionError("项目名不能为空")
    project_dir = (base_dir / name).resolve()
    if project_dir.exists() or project_dir.is_symlink():
        raise PreconditionError(f"'{name}' 已存在，请换一个项目名或先删除该路径")
    return project_dir


# ============================================================
# Step 1: check_toolchain
# ============================================================

def step_check_toolchain(ctx: BootstrapContext) -> StepResult:
    """cargo / forge / cargo-risczero 版本检测。"""
    if not ctx.check_toolchain:
        return StepResult("skipped", "用户指定 --skip-toolchain-check")
    versions = probe_toolchain(ctx.config, ctx.runner)
    summary = ", ".join(f"{name} {ver}" for name, ver in versions.items())
    return StepResult("applied", summary)


# ============================================================
# Step 2-4: clone / checkout / sparse_filter
# ============================================================

def step_clone(ctx: BootstrapContext) -> StepResult:
    url = ctx.config["template"]["url"]
    _git(ctx, "clone", "--recursive", url, str(ctx.project_dir))
    return StepResult("applied", f"已克隆 {url}", 1)


def step_checkout(ctx: BootstrapContext) -> StepResult:
    branch = ctx.config["template"]["branch"]
    _git(ctx, "checkout", branch, cwd=ctx.project_dir)
    return StepResult("applied", f"已切换到 {branch}", 1)


def step_sparse_filter(ctx: BootstrapContext) -> StepResult:
    """只检出示例子树，减少磁盘占用（优化，非正确性要求）。"""
    example_path = ctx.config["template"]["example_path"]
    _git(ctx, "sparse-checkout", "init", "--cone", cwd=ctx.project_dir)
    _git(ctx, "sparse-checkout", "set", example_path, cwd=ctx.project_dir)
    return StepResult("applied", f"稀疏检出: {example_path}", 1)


# ============================================================
# Step 5: relocate_files
# ============================================================

def step_relocate_files(ctx: BootstrapContext) -> StepResult:
    example_path = ctx.config["template"]["example_path"]
    actions = relocate_example(ctx.project_dir, example_path)
    for action in actions:
        _log(ctx, action)
    if not (ctx.project_dir / ctx.config["files"]["manifest"]).exists():
        print(f"  [WARN] 项目根目录下没有 {ctx.config['files']['manifest']}，"
              f"请确认示例路径 {example_path} 是否正确")
    return StepResult("applied", f"示例内容已提升到项目根目录（{len(actions)} 项操作）", len(actions))


# ============================================================
# Step 6-7: rewrite_manifests / rewrite_build_config
# ============================================================

def step_rewrite_manifests(ctx: BootstrapContext) -> StepResult:
    """改写项目内所有 Cargo.toml：先遍历收集，再逐个改写。"""
    manifest_name = ctx.config["files"]["manifest"]
    manifests = list(iter_files(ctx.project_dir, manifest_name))
    if not manifests:
        return StepResult("skipped", f"未找到 {manifest_name}")

    rules = manifest_rules(ctx.config)
    changed = 0
    for path in manifests:
        rel_path = path.relative_to(ctx.project_dir).as_posix()
        if rewrite_file(path, rules, rel_path):
            changed += 1
            _log(ctx, f"改写: {rel_path}")
    return StepResult("applied", f"改写 {changed}/{len(manifests)} 个 {manifest_name}", changed)


def _rewrite_root_file(ctx: BootstrapContext, filename: str, rules) -> StepResult:
    path = ctx.project_dir / filename
    if not path.is_file():
        return StepResult("skipped", f"{filename} 不存在")
    if rewrite_file(path, rules, filename):
        return StepResult("applied", f"改写 {filename}", 1)
    return StepResult("skipped", f"{filename} 无需改写")


def step_rewrite_build_config(ctx: BootstrapContext) -> StepResult:
    return _rewrite_root_file(ctx, ctx.config["files"]["build_config"], build_config_rules())


# ============================================================
# Step 8: establish_submodules
# ============================================================

def step_establish_submodules(ctx: BootstrapContext) -> StepResult:
    """清空 lib/ 与 .git/，重新 git init 并添加三个子模块。"""
    lib_dir = ctx.project_dir / "lib"
    git_dir = ctx.project_dir / ".git"

    if lib_dir.exists():
        remove_tree(lib_dir)
    lib_dir.mkdir()
    if git_dir.exists():
        remove_tree(git_dir)
    _log(ctx, "已清空 lib/ 与 .git/")

    _git(ctx, "init", "--quiet", cwd=ctx.project_dir)
    _git(ctx, "submodule", "init", cwd=ctx.project_dir)

    submodules = ctx.config["submodules"]
    for sub in submodules:
        args = ["submodule", "add"]
        if sub.get("branch"):
            args += ["-b", sub["branch"]]
        args += [sub["url"], sub["path"]]
        _git(ctx, *args, cwd=ctx.project_dir)

    _git(ctx, "submodule", "update", "--init", "--recursive", "--quiet", cwd=ctx.project_dir)
    _git(ctx, "submodule", "foreach", "--recursive", "git reset --hard --quiet",
         cwd=ctx.project_dir)

    paths = ", ".join(sub["path"] for sub in submodules)
    return StepResult("applied", f"添加子模块: {paths}", len(submodules))


# ============================================================
# Step 9: rewrite_remappings
# ============================================================

def step_rewrite_remappings(ctx: BootstrapContext) -> StepResult:
    return _rewrite_root_file(ctx, ctx.config["files"]["remappings"], remapping_rules())


# ============================================================
# 主流程
# ============================================================

# 步骤定义（name, label, function）
BOOTSTRAP_STEPS = [
    ("check_toolchain",      "工具链检测",            step_check_toolchain),
    ("clone",                "克隆模板仓库",          step_clone),
    ("checkout",             "切换分支",              step_checkout),
    ("sparse_filter",        "稀疏检出示例",          step_sparse_filter),
    ("relocate_files",       "提升示例目录",          step_relocate_files),
    ("rewrite_manifests",    "改写 Cargo.toml",       step_rewrite_manifests),
    ("rewrite_build_config", "改写 foundry.toml",     step_rewrite_build_config),
    ("establish_submodules", "建立 Git 子模块",       step_establish_submodules),
    ("rewrite_remappings",   "改写 remappings.txt",   step_rewrite_remappings),
]


def _cleanup(ctx: BootstrapContext) -> None:
    """失败补偿：删除已创建的项目目录。"""
    if not ctx.project_dir.exists():
        return
    try:
        remove_tree(ctx.project_dir)
        print(f"  已删除未完成的项目目录: {ctx.project_dir}")
    except BerryError as e:
        print(f"  [WARN] 清理项目目录失败，请手动删除: {e}")


def run_bootstrap(ctx: BootstrapContext, steps=None) -> bool:
    """按序执行全部步骤，返回是否成功。首个失败即中止并清理项目目录。"""
    steps = BOOTSTRAP_STEPS if steps is None else steps
    print()
    print(f"  创建项目: {ctx.project_name}")
    print(f"  项目目录: {ctx.project_dir}")
    print()

    for i, (name, label, func) in enumerate(steps, 1):
        prefix = f"[{i}/{len(steps)}]"
        try:
            result = func(ctx)
        except Exception as e:
            result = StepResult("error", str(e) or type(e).__name__)

        ctx.results.append((label, result))

        # 状态图标
        icon = {"applied": "OK", "skipped": "--", "error": "!!"}.get(result.status, "??")
        print(f"  {prefix} [{icon}] {label}: {result.message}")

        if result.status == "error":
            print(f"\n  步骤 {name} 失败，中止创建。")
            _cleanup(ctx)
            return False

    _print_summary(ctx)
    return True


def _print_summary(ctx: BootstrapContext) -> None:
    applied = sum(1 for _, r in ctx.results if r.status == "applied")
    skipped = sum(1 for _, r in ctx.results if r.status == "skipped")
    total_changes = sum(r.changes for _, r in ctx.results)

    print()
    print("=" * 60)
    print(f"  项目创建完成: {ctx.project_dir}")
    print("=" * 60)
    print(f"  合计: {applied} 已应用, {skipped} 跳过, {total_changes} 项变更")
    print()
    print("下一步:")
    print(f"  1. cd {ctx.project_name}")
    print(f"  2. cargo build && forge build")
    print(f"  3. python scripts/berry.py prepare-test（生成 .env 并准备集成测试）")
    print()


def create_project(
    name: str,
    config: dict,
    runner: Callable[..., str] | None = None,
    base_dir: Path | None = None,
    verbose: bool = False,
    check_toolchain: bool = True,
) -> bool:
    """校验项目名后运行完整创建流程。

    项目名非法或目标已存在时直接抛出 PreconditionError，不执行任何步骤。
    """
    project_dir = validate_project_name(name, base_dir or Path.cwd())
    ctx = BootstrapContext(
        project_name=name.strip(),
        project_dir=project_dir,
        config=config,
        runner=runner or run_command,
        verbose=verbose,
        check_toolchain=check_toolchain,
    )
    return run_bootstrap(ctx)
