"""测试共享 fixture — 内存 tar.gz 归档 + mock HTTP 响应 + mock git 执行器

所有测试都不访问真实网络，也不调用真实 git。
"""

from __future__ import annotations

import io
import tarfile
from pathlib import Path

import pytest

from cutlass_headers.core.config import FetcherConfig
from cutlass_headers.utils.logger import reset_logging
from cutlass_headers.utils.shell import CommandResult

DEFAULT_FILES = {
    "include/cutlass/cutlass.h": b"#pragma once\n",
    "include/cute/tensor.hpp": b"#pragma once\n",
    "README.md": b"CUTLASS\n",
}


def build_archive(
    top: str = "cutlass-4.2.1",
    files: dict[str, bytes] | None = None,
) -> bytes:
    """构造 GitHub 风格的 tag 归档（单个顶层目录）"""
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tf:
        for rel, data in (DEFAULT_FILES if files is None else files).items():
            info = tarfile.TarInfo(f"{top}/{rel}" if top else rel)
            info.size = len(data)
            tf.addfile(info, io.BytesIO(data))
    return buf.getvalue()


class FakeResponse:
    """urlopen 返回值替身（支持 with 语句）"""

    def __init__(self, body: bytes, status: int = 200) -> None:
        self.body = body
        self.status = status

    def read(self) -> bytes:
        return self.body

    def __enter__(self) -> FakeResponse:
        return self

    def __exit__(self, *exc: object) -> None:
        return None


class FakeGit:
    """记录调用的 git 执行器；成功时在目标目录生成 include/"""

    def __init__(self, returncode: int = 0, stderr: str = "", calls: list | None = None) -> None:
        self.returncode = returncode
        self.stderr = stderr
        self.commands: list[list[str]] = []
        self.calls = calls

    def execute(self, cmd, *, cwd=".", timeout=None) -> CommandResult:
        self.commands.append(list(cmd))
        if self.calls is not None:
            self.calls.append("git")
        if self.returncode == 0:
            target = Path(cmd[-1])
            (target / "include" / "cutlass").mkdir(parents=True)
            (target / "include" / "cutlass" / "cutlass.h").write_text("#pragma once\n")
            (target / ".git").mkdir()
            (target / ".git" / "HEAD").write_text("ref: refs/heads/main\n")
        return CommandResult(returncode=self.returncode, stdout="", stderr=self.stderr)


@pytest.fixture()
def archive_bytes() -> bytes:
    return build_archive()


@pytest.fixture()
def cfg(tmp_path: Path) -> FetcherConfig:
    """缓存根目录位于 tmp_path 的配置"""
    return FetcherConfig(package_version="4.2.1", cache_root=str(tmp_path / "cache"))


@pytest.fixture(autouse=True)
def _clean_logging():
    yield
    reset_logging()


@pytest.fixture()
def make_archive():
    """归档工厂 fixture: make_archive(top=..., files=...)"""
    return build_archive


@pytest.fixture()
def fake_response():
    """FakeResponse 类，用法: fake_response(body, status=200)"""
    return FakeResponse


@pytest.fixture()
def fake_git():
    """FakeGit 类，用法: fake_git(returncode=0, stderr="", calls=None)"""
    return FakeGit
