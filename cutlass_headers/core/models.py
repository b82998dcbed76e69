"""数据模型

- FetchResult: 流水线成功时的结果（库根目录 + include 目录）
- SourceArtifact: 某个来源拉取到的临时目录
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

ORIGIN_OVERRIDE = "override"
ORIGIN_CACHE = "cache"
ORIGIN_HTTP = "http"
ORIGIN_GIT = "git"


@dataclass(frozen=True)
class FetchResult:
    """拉取结果"""

    root: Path          # 库根目录（缓存槽位或 CUTLASS_DIR）
    include_dir: Path   # root / "include"
    version: str        # 三段式目标版本
    origin: str         # override / cache / http / git

    @classmethod
    def at(cls, root: Path, version: str, origin: str) -> FetchResult:
        root = root.resolve()
        return cls(root=root, include_dir=root / "include",
                   version=version, origin=origin)


@dataclass
class SourceArtifact:
    """来源拉取产物

    path 是解压/克隆后的库根目录，scratch 是需要在物化后清理的临时目录
    （path 位于 scratch 之内）。
    """

    path: Path
    scratch: Path
    origin: str
