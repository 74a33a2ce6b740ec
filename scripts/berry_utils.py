#!/usr/bin/env python3
"""
berry_utils.py — berry 脚本共享工具函数

提供异常类型、外部命令执行、工具链版本检测、配置加载等公共函数，
供 bootstrap.py、prepare_env.py、berry.py 复用。
"""

from __future__ import annotations

import copy
import os
import subprocess
from pathlib import Path

import yaml


# ============================================================
# 异常类型
# ============================================================

class BerryError(RuntimeError):
    """berry 所有可预期错误的基类。"""


class PreconditionError(BerryError):
    """前置条件不满足（目标已存在、必需文件缺失等），尚未产生任何副作用。"""


class ConfigError(BerryError):
    pass


class FileOpError(BerryError):
    pass


class CommandError(BerryError):
    """外部命令启动失败或返回非零退出码。"""

    def __init__(self, command: list[str], returncode: int | None, stderr: str):
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        shown = " ".join(command)
        if returncode is None:
            msg = f"命令无法启动: {shown}: {stderr}"
        else:
            msg = f"命令失败（returncode={returncode}）: {shown}"
            if stderr.strip():
                msg += f"\n{stderr.strip()}"
        super().__init__(msg)


# ============================================================
# 配置常量（全局唯一定义，所有脚本共用）
# ============================================================

RISC0_ETHEREUM_URL = "https://github.com/risc0/risc0-ethereum"
RISC0_BRANCH = "release-1.2"

DEFAULT_CONFIG: dict = {
    "template": {
        "url": f"{RISC0_ETHEREUM_URL}.git",
        "branch": RISC0_BRANCH,
        "example_path": "examples/erc20-counter",
    },
    "dependencies": {
        "git_url": RISC0_ETHEREUM_URL,
        "branch": RISC0_BRANCH,
    },
    "submodules": [
        {"url": "https://github.com/foundry-rs/forge-std", "branch": None,
         "path": "lib/forge-std"},
        {"url": "https://github.com/OpenZeppelin/openzeppelin-contracts", "branch": None,
         "path": "lib/openzeppelin-contracts"},
        {"url": RISC0_ETHEREUM_URL, "branch": RISC0_BRANCH,
         "path": "lib/risc0-ethereum"},
    ],
    "files": {
        "manifest": "Cargo.toml",
        "build_config": "foundry.toml",
        "remappings": "remappings.txt",
    },
    "toolchain": {
        "risczero_min_version": "1.2",
    },
    "test_env": {
        "entry_script": "e2e-test.sh",
        "build_command": "cargo build && forge build",
        "env_file": ".env",
        "defaults": {
            "ETH_RPC_URL": "http://localhost:8545",
            "ETH_WALLET_ADDRESS": "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266",
            "CHAIN_ID": "31337",
        },
        "secret_key": "ETH_WALLET_PRIVATE_KEY",
    },
}


# ============================================================
# 配置加载
# ============================================================

def _deep_merge(base: dict, override: dict) -> dict:
    """递归合并字典，override 中的标量/列表直接覆盖 base。"""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def validate_submodules(submodules, config_path: Path) -> None:
    """校验 submodules 列表：每项必须是含非空 url 与 path 的映射。"""
    if not isinstance(submodules, list):
        raise ConfigError(f"submodules 必须是列表: {config_path}")
    for i, sub in enumerate(submodules):
        if not isinstance(sub, dict):
            raise ConfigError(f"submodules[{i}] 必须是映射: {config_path}")
        for key in ("url", "path"):
            if not sub.get(key):
                raise ConfigError(f"submodules[{i}] 缺少 {key}: {config_path}")


def load_berry_config(config_path: Path | None = None) -> dict:
    """加载配置：DEFAULT_CONFIG + 可选 YAML 覆盖文件。

    覆盖文件优先级：
    1. 显式传入的 config_path（不存在则报错）
    2. BERRY_CONFIG 环境变量（不存在则报错）
    3. 无覆盖，直接返回默认配置副本
    """
    if config_path is None:
        env_path = os.environ.get("BERRY_CONFIG")
        if not env_path:
            return copy.deepcopy(DEFAULT_CONFIG)
        config_path = Path(env_path)

    if not config_path.exists():
        raise ConfigError(f"配置文件不存在: {config_path}")
    try:
        override = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"配置文件解析失败: {config_path}: {e}") from e
    if not isinstance(override, dict):
        raise ConfigError(f"配置文件顶层必须是映射: {config_path}")
    config = _deep_merge(DEFAULT_CONFIG, override)
    validate_submodules(config.get("submodules"), config_path)
    return config


# ============================================================
# 外部命令执行
# ============================================================

def run_command(program: str, args: list[str], cwd: Path | None = None) -> str:
    """同步执行外部命令，成功返回 stdout。

    启动失败或非零退出码均抛出 CommandError（后者携带 stderr 原文）。
    不重试、不设超时。
    """
    cmd = [program, *args]
    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            cwd=cwd,
            encoding="utf-8",
            errors="replace",
        )
    except OSError as e:
        raise CommandError(cmd, None, str(e)) from e
    if result.returncode != 0:
        raise CommandError(cmd, result.returncode, result.stderr)
    return result.stdout


def run_shell(command: str, cwd: Path | None = None) -> str:
    """通过 shell 执行组合命令（如 "cargo build && forge build"）。"""
    try:
        result = subprocess.run(
            command,
            shell=True,
            capture_output=True,
            text=True,
            cwd=cwd,
            encoding="utf-8",
            errors="replace",
        )
    except OSError as e:
        raise CommandError([command], None, str(e)) from e
    if result.returncode != 0:
        raise CommandError([command], result.returncode, result.stderr)
    return result.stdout


# ============================================================
# 工具链检测
# ============================================================

TOOLCHAIN_PROBES = [
    ("cargo", "cargo", ["--version"]),
    ("forge", "forge", ["--version"]),
    ("risczero", "cargo", ["risczero", "--version"]),
]


def parse_version_token(output: str) -> str:
    """取输出首行的第二个空白分隔词作为版本号（如 "cargo 1.81.0 (...)" → "1.81.0"）。"""
    lines = output.strip().splitlines()
    parts = lines[0].split() if lines else []
    if len(parts) < 2:
        raise PreconditionError(f"无法解析版本输出: {output.strip()!r}")
    return parts[1]


def probe_toolchain(config: dict, runner=run_command) -> dict:
    """检测 cargo / forge / cargo-risczero 版本，返回 {名称: 版本}。

    cargo-risczero 版本的 major.minor 必须等于 toolchain.risczero_min_version。
    """
    versions = {}
    for name, program, args in TOOLCHAIN_PROBES:
        try:
            output = runner(program, args)
        except CommandError as e:
            raise PreconditionError(
                f"{name} 不可用，请先安装（{' '.join([program, *args])} 执行失败）"
            ) from e
        versions[name] = parse_version_token(output)

    required = config["toolchain"]["risczero_min_version"]
    version = versions["risczero"]
    if version != required and not version.startswith(required + "."):
        raise PreconditionError(
            f"cargo-risczero 版本为 {versions['risczero']}，需要 {required}.x，"
            f"请运行: rzup install"
        )
    return versions
