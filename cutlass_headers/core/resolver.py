"""拉取流水线

  版本映射 -> CUTLASS_DIR 覆盖 -> 本地缓存 -> 来源策略列表 -> 物化 -> 结果

每一步成功即返回。来源默认依次为 HTTP 归档下载（带重试）和 git 浅克隆；
全部失败时抛 FatalAcquisitionError，附带各来源错误和补救办法。

用法:
    from cutlass_headers.core.config import FetcherConfig
    from cutlass_headers.core.resolver import resolve

    result = resolve(FetcherConfig.from_env())
    print(result.include_dir)
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

from cutlass_headers.core.cache import HeaderCache, remove_tree
from cutlass_headers.core.config import (
    ENV_OVERRIDE_DIR,
    ENV_TIMEOUT,
    FetcherConfig,
)
from cutlass_headers.core.exceptions import (
    ConfigurationError,
    FallbackError,
    FatalAcquisitionError,
    TransientNetworkError,
)
from cutlass_headers.core.models import ORIGIN_CACHE, ORIGIN_OVERRIDE, FetchResult
from cutlass_headers.core.sources import (
    ArchiveSource,
    GitCloneSource,
    HttpArchiveSource,
)
from cutlass_headers.core.version import release_tag

logger = logging.getLogger(__name__)


def default_sources(config: FetcherConfig) -> list[ArchiveSource]:
    """默认策略: 先 HTTP 归档，后 git clone"""
    return [
        HttpArchiveSource.from_config(config),
        GitCloneSource.from_config(config),
    ]


def resolve_override(config: FetcherConfig) -> FetchResult | None:
    """检查 CUTLASS_DIR 覆盖

    未设置返回 None；设置了但缺少 include/ 直接报错，不回退到下载。
    """
    if not config.override_dir:
        return None
    root = Path(config.override_dir)
    if not (root / "include").is_dir():
        raise ConfigurationError(
            f"{ENV_OVERRIDE_DIR}={root} 无效: 目录下没有 include/。"
            f"请指向 CUTLASS 源码根目录，或取消设置 {ENV_OVERRIDE_DIR} 以自动下载"
        )
    logger.info("使用 %s 覆盖: %s", ENV_OVERRIDE_DIR, root)
    return FetchResult.at(root, config.resolved_version, ORIGIN_OVERRIDE)


def resolve(
    config: FetcherConfig,
    *,
    sources: Sequence[ArchiveSource] | None = None,
    cache: HeaderCache | None = None,
) -> FetchResult:
    """解析 CUTLASS 头文件位置，必要时下载并写入缓存

    不修改进程环境；发布路径见 cutlass_headers.core.publish。

    Raises:
        ConfigurationError: CUTLASS_DIR 无效或配置非法
        FatalAcquisitionError: 所有来源均失败
        OSError: 缓存目录读写失败
    """
    version = config.resolved_version
    logger.info(
        "目标 CUTLASS 版本: %s (包版本 %s)", version, config.package_version,
    )

    override = resolve_override(config)
    if override is not None:
        return override

    cache = cache or HeaderCache.for_config(config)
    slot = cache.lookup(version)
    if slot is not None:
        return FetchResult.at(slot, version, ORIGIN_CACHE)

    logger.info("缓存未命中，开始拉取: %s -> %s", version, cache.slot(version))
    if sources is None:
        sources = default_sources(config)

    errors: list[str] = []
    for source in sources:
        scratch = cache.make_scratch(source.name)
        try:
            artifact = source.fetch(version, scratch)
            slot = cache.materialize(artifact, version)
        except (TransientNetworkError, FallbackError) as e:
            logger.warning("来源 %s 失败: %s", source.name, e)
            errors.append(f"[{source.name}] {e}")
            continue
        finally:
            remove_tree(scratch)
        logger.info("CUTLASS %s 就绪: %s", version, slot)
        return FetchResult.at(slot, version, artifact.origin)

    raise FatalAcquisitionError(
        _failure_message(config, version, errors), details=errors,
    )


def _failure_message(
    config: FetcherConfig, version: str, errors: list[str],
) -> str:
    tag = release_tag(version)
    lines = [f"无法获取 CUTLASS {version}，所有来源均失败:"]
    lines += [f"  {e}" for e in errors] or ["  (未配置任何来源)"]
    lines += [
        "解决办法:",
        f"  1. 设置 {ENV_OVERRIDE_DIR}=<本地 CUTLASS 目录>（需包含 include/）",
        f"  2. 网络较慢时增大 {ENV_TIMEOUT}（当前 {config.timeout} 秒）",
        f"  3. 手动执行 git clone --depth 1 --branch {tag} {config.repo_url} <目录>，"
        f"然后设置 {ENV_OVERRIDE_DIR}=<目录>",
    ]
    return "\n".join(lines)
