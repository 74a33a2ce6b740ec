#!/usr/bin/env python3
"""
rewrite_rules.py — 配置文件文本改写引擎与规则表

所有改写均为固定字面量的查找/替换，不是模板语言：
    Rule(pattern, replacement)                 全量替换 pattern 的每一处出现
    Rule(pattern, replacement, when=谓词)      仅当文件相对路径满足谓词时生效
    Rule(line, kind="append")                  内容中不存在 line 时追加到末尾

规则按声明顺序依次作用，后面的规则可以看到前面规则的输出。
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from berry_utils import FileOpError


@dataclass(frozen=True)
class Rule:
    pattern: str
    replacement: str = ""
    when: Callable[[str], bool] | None = None
    kind: str = "replace"          # 'replace' | 'append'
    unless_present: str | None = None


# ============================================================
# 路径谓词（参数为项目内相对路径，POSIX 分隔符）
# ============================================================

def in_apps(rel_path: str) -> bool:
    return "/apps/" in f"/{rel_path}"


def is_methods_manifest(rel_path: str) -> bool:
    return rel_path == "methods/Cargo.toml"


def not_methods_manifest(rel_path: str) -> bool:
    return not is_methods_manifest(rel_path)


def _general_outside_apps(rel_path: str) -> bool:
    return not_methods_manifest(rel_path) and not in_apps(rel_path)


def _general_in_apps(rel_path: str) -> bool:
    return not_methods_manifest(rel_path) and in_apps(rel_path)


# ============================================================
# 改写引擎
# ============================================================

def apply_rules(content: str, rules: list[Rule], rel_path: str = "") -> str:
    """按顺序应用规则，返回新内容。pattern 不存在不算错误。"""
    for rule in rules:
        if rule.when is not None and not rule.when(rel_path):
            continue
        if rule.kind == "append":
            if rule.pattern not in content:
                if content and not content.endswith("\n"):
                    content += "\n"
                content += rule.pattern + "\n"
            continue
        if rule.unless_present is not None and rule.unless_present in content:
            continue
        content = content.replace(rule.pattern, rule.replacement)
    return content


def rewrite_file(path: Path, rules: list[Rule], rel_path: str = "") -> bool:
    """整体读入、改写、整体写回。返回内容是否发生变化。

    文件不存在时抛出 FileNotFoundError，由调用方决定是否视为跳过。
    """
    try:
        original = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise FileOpError(f"文件不是 UTF-8 编码: {path}: {e}") from e
    updated = apply_rules(original, rules, rel_path)
    if updated == original:
        return False
    path.write_text(updated, encoding="utf-8")
    return True


# ============================================================
# 规则表
# ============================================================

def _git_dep(name: str, git_url: str, branch: str, features: list[str] | None = None) -> str:
    decl = f'{name} = {{ git = "{git_url}", branch = "{branch}"'
    if features:
        quoted = ", ".join(f'"{f}"' for f in features)
        decl += f", features = [{quoted}]"
    return decl + " }"


def manifest_rules(config: dict) -> list[Rule]:
    """Cargo.toml 改写规则：本地 path 依赖 → 远程 git 依赖。

    - methods/Cargo.toml 只应用 methods 专用规则
    - apps/ 下的 risc0-steel 额外带 "host" feature
    """
    url = config["dependencies"]["git_url"]
    branch = config["dependencies"]["branch"]

    rules = [
        Rule(
            'risc0-build-ethereum = { path = "../../../build" }',
            _git_dep("risc0-build-ethereum", url, branch),
            when=is_methods_manifest,
        ),
    ]
    # 模板内 manifest 位于不同深度，两种相对路径都需覆盖
    for prefix in ("../../../", "../../"):
        rules += [
            Rule(
                f'risc0-build-ethereum = {{ path = "{prefix}build" }}',
                _git_dep("risc0-build-ethereum", url, branch),
                when=not_methods_manifest,
            ),
            Rule(
                f'risc0-ethereum-contracts = {{ path = "{prefix}contracts" }}',
                _git_dep("risc0-ethereum-contracts", url, branch),
                when=not_methods_manifest,
            ),
            Rule(
                f'risc0-steel = {{ path = "{prefix}steel" }}',
                _git_dep("risc0-steel", url, branch),
                when=_general_outside_apps,
            ),
            Rule(
                f'risc0-steel = {{ path = "{prefix}steel" }}',
                _git_dep("risc0-steel", url, branch, features=["host"]),
                when=_general_in_apps,
            ),
        ]
    return rules


DEFAULT_PROFILE_KEY = "auto_detect_remappings = false"


def build_config_rules() -> list[Rule]:
    """foundry.toml 改写规则：libs 指向本地 lib/，[profile.default] 下插入一个配置项。"""
    return [
        Rule('libs = ["../../lib", "../../contracts/src"]', 'libs = ["lib"]'),
        Rule(
            "[profile.default]\n",
            f"[profile.default]\n{DEFAULT_PROFILE_KEY}\n",
            unless_present=DEFAULT_PROFILE_KEY,
        ),
    ]


STEEL_REMAPPING = "steel/=lib/risc0-ethereum/contracts/src/steel/"


def remapping_rules() -> list[Rule]:
    """remappings.txt 改写规则：上级目录相对路径 → 本地子模块布局，并追加 steel 映射。"""
    return [
        Rule("forge-std/=../../lib/forge-std/src/", "forge-std/=lib/forge-std/src/"),
        Rule(
            "openzeppelin/=../../lib/openzeppelin-contracts/",
            "openzeppelin/=lib/openzeppelin-contracts/",
        ),
        Rule("risc0/=../../contracts/src/", "risc0/=lib/risc0-ethereum/contracts/src/"),
        Rule(STEEL_REMAPPING, kind="append"),
    ]
