"""Shared fixtures for berry tests."""

from __future__ import annotations

import pytest
from pathlib import Path

from berry_utils import CommandError, load_berry_config

EXAMPLE = "examples/erc20-counter"

TEMPLATE_FILES = {
    # template scaffold at the repository root
    "README.md": "# risc0-ethereum\n",
    "LICENSE": "Apache-2.0\n",
    "Cargo.toml": '[workspace]\nmembers = ["build", "contracts", "steel"]\n',
    ".gitmodules": '[submodule "lib/forge-std"]\n',
    ".git/HEAD": "ref: refs/heads/main\n",
    # the example that becomes the new project
    f"{EXAMPLE}/README.md": "# ERC20 Counter\n",
    f"{EXAMPLE}/.gitignore": "target/\nout/\n",
    f"{EXAMPLE}/e2e-test.sh": "#!/bin/bash\nset -e\n",
    f"{EXAMPLE}/Cargo.toml": (
        "[workspace]\n"
        'members = ["apps", "methods"]\n'
        "\n"
        "[workspace.dependencies]\n"
        'risc0-build-ethereum = { path = "../../build" }\n'
        'risc0-ethereum-contracts = { path = "../../contracts" }\n'
        'risc0-steel = { path = "../../steel" }\n'
    ),
    f"{EXAMPLE}/apps/Cargo.toml": (
        "[dependencies]\n"
        'risc0-ethereum-contracts = { path = "../../../contracts" }\n'
        'risc0-steel = { path = "../../../steel" }\n'
    ),
    f"{EXAMPLE}/methods/Cargo.toml": (
        "[build-dependencies]\n"
        'risc0-build-ethereum = { path = "../../../build" }\n'
    ),
    f"{EXAMPLE}/methods/guest/Cargo.toml": (
        "[dependencies]\n"
        'risc0-steel = { path = "../../../steel" }\n'
    ),
    f"{EXAMPLE}/foundry.toml": (
        "[profile.default]\n"
        'src = "contracts"\n'
        'out = "out"\n'
        'libs = ["../../lib", "../../contracts/src"]\n'
    ),
    f"{EXAMPLE}/remappings.txt": (
        "forge-std/=../../lib/forge-std/src/\n"
        "openzeppelin/=../../lib/openzeppelin-contracts/\n"
        "risc0/=../../contracts/src/"
    ),
    f"{EXAMPLE}/contracts/Counter.sol": "contract Counter {}\n",
}


def build_template_tree(dest: Path) -> Path:
    """Write a miniature risc0-ethereum checkout under dest."""
    for rel, content in TEMPLATE_FILES.items():
        path = dest / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    return dest


class FakeRunner:
    """Records external commands and simulates the few that touch disk."""

    VERSIONS = {
        ("cargo", "--version"): "cargo 1.81.0 (2dbb1af80 2024-08-20)\n",
        ("forge", "--version"): "forge 0.2.0 (c4a984f 2024-10-01T00:19:05.126233000Z)\n",
        ("cargo", "risczero", "--version"): "cargo-risczero 1.2.0\n",
    }

    def __init__(self, fail_on: str | None = None, versions: dict | None = None):
        self.calls: list[tuple[str, list[str], Path | None]] = []
        self.fail_on = fail_on
        self.versions = {**self.VERSIONS, **(versions or {})}

    def __call__(self, program, args, cwd=None):
        self.calls.append((program, list(args), cwd))
        line = " ".join([program, *args])
        if self.fail_on and self.fail_on in line:
            raise CommandError([program, *args], 128, f"fatal: {self.fail_on} failed")

        key = (program, *args)
        if key in self.versions:
            return self.versions[key]
        if program == "git" and args[:1] == ["clone"]:
            build_template_tree(Path(args[-1]))
        elif program == "git" and args[:2] == ["submodule", "add"]:
            (Path(cwd) / args[-1]).mkdir(parents=True)
        return ""

    def git_subcommands(self) -> list[str]:
        return [" ".join(args[:2]) for program, args, _ in self.calls if program == "git"]


@pytest.fixture
def config(monkeypatch):
    monkeypatch.delenv("BERRY_CONFIG", raising=False)
    return load_berry_config()


@pytest.fixture
def fake_runner():
    return FakeRunner()


@pytest.fixture
def template_tree(tmp_path):
    """A freshly cloned (unsparsed) template at tmp_path / "demo"."""
    return build_template_tree(tmp_path / "demo")


@pytest.fixture
def scaffolded_project(tmp_path):
    """A project directory as left behind by create-project."""
    project = tmp_path / "demo"
    project.mkdir()
    (project / "e2e-test.sh").write_text("#!/bin/bash\nset -e\n", encoding="utf-8")
    (project / "Cargo.toml").write_text("[workspace]\n", encoding="utf-8")
    return project
