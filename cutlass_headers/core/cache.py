"""本地头文件缓存

职责:
- 计算缓存根目录（显式配置 > CUTLASS_HOME > 平台用户缓存目录 > 临时目录）
- 按版本查找缓存槽位（<root>/<version>/include 存在即命中，不做校验）
- 物化: 把来源产物复制进缓存槽位
- 清理临时目录

缓存永不自动失效，过期版本需手动删除。
"""

from __future__ import annotations

import json
import logging
import os
import shutil
import tempfile
import time
from pathlib import Path

from cutlass_headers.core.config import FetcherConfig
from cutlass_headers.core.models import SourceArtifact

logger = logging.getLogger(__name__)

MARKER_FILE = ".cutlass-headers.json"


def cache_root(config: FetcherConfig) -> Path:
    """缓存根目录，各版本槽位直接位于其下"""
    if config.cache_root:
        return Path(config.cache_root)
    if config.cache_home:
        return Path(config.cache_home) / config.namespace
    if config.user_cache_dir:
        return Path(config.user_cache_dir) / config.namespace
    return Path(tempfile.gettempdir()) / config.namespace


def remove_tree(path: Path) -> None:
    """尽力删除目录，失败只记 debug 日志"""
    try:
        shutil.rmtree(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.debug("临时目录清理失败（忽略）: %s - %s", path, e)


class HeaderCache:
    """按版本组织的头文件缓存"""

    def __init__(self, root: Path) -> None:
        self.root = root

    @classmethod
    def for_config(cls, config: FetcherConfig) -> HeaderCache:
        return cls(cache_root(config))

    def slot(self, version: str) -> Path:
        return self.root / version

    def lookup(self, version: str) -> Path | None:
        """返回已缓存版本的槽位目录，未命中返回 None"""
        slot = self.slot(version)
        if (slot / "include").is_dir():
            logger.info("缓存命中: %s -> %s", version, slot)
            return slot
        return None

    def list_versions(self) -> list[str]:
        """列出已缓存的版本（只统计含 include/ 的槽位）"""
        if not self.root.is_dir():
            return []
        return sorted(
            d.name for d in self.root.iterdir()
            if d.is_dir()
            and not d.name.startswith(".")
            and (d / "include").is_dir()
        )

    def make_scratch(self, prefix: str) -> Path:
        """在缓存根目录下创建临时目录，与槽位同盘便于 rename"""
        self.root.mkdir(parents=True, exist_ok=True)
        return Path(tempfile.mkdtemp(dir=self.root, prefix=f".{prefix}-"))

    def materialize(self, artifact: SourceArtifact, version: str) -> Path:
        """把来源产物复制进版本槽位，返回槽位路径

        先复制到同级临时目录并写入标记文件，再 rename 到槽位。
        rename 时槽位若已有 include/（并发构建先完成），丢弃本次副本；
        槽位存在但缺少 include/ 视为残留，先删除再替换。
        """
        slot = self.slot(version)
        staging = self.make_scratch(f"{version}.tmp")
        try:
            tree = staging / "tree"
            shutil.copytree(
                artifact.path, tree,
                ignore=shutil.ignore_patterns(".git"),
            )
            _write_marker(tree, version, artifact.origin)

            if (slot / "include").is_dir():
                logger.info("缓存槽位已被其他构建填充，丢弃本次副本: %s", slot)
            else:
                if slot.exists():
                    logger.warning("清理不完整的缓存槽位: %s", slot)
                    shutil.rmtree(slot)
                os.replace(tree, slot)
                logger.info("已写入缓存: %s (来源=%s)", slot, artifact.origin)
        finally:
            remove_tree(staging)
        return slot


def _write_marker(tree: Path, version: str, origin: str) -> None:
    marker = {
        "version": version,
        "origin": origin,
        "materialized_at": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
    }
    (tree / MARKER_FILE).write_text(
        json.dumps(marker, indent=2), encoding="utf-8",
    )
