"""发布头文件路径

把 FetchResult 暴露给调用方构建及其下游:
- 构建元数据: cutlass:<key>=<value> 行（CLI 输出到 stdout）
- 环境变量: 写入当前进程环境（子进程继承），可选追加到 env 文件
  （KEY=VALUE 行，兼容 GitHub Actions 的 $GITHUB_ENV）

include 路径以多个等价键名发布以保持兼容。
"""

from __future__ import annotations

import logging
import os
from collections.abc import MutableMapping
from pathlib import Path

from cutlass_headers.core.models import FetchResult

logger = logging.getLogger(__name__)

METADATA_PREFIX = "cutlass"


def metadata_pairs(result: FetchResult) -> list[tuple[str, str]]:
    include = str(result.include_dir)
    return [
        ("include", include),
        ("INCLUDE_DIR", include),
        ("root", str(result.root)),
        ("VERSION", result.version),
    ]


def env_vars(result: FetchResult) -> dict[str, str]:
    include = str(result.include_dir)
    root = str(result.root)
    return {
        "DEP_CUTLASS_INCLUDE": include,
        "DEP_CUTLASS_INCLUDE_DIR": include,
        "CUTLASS_INCLUDE_DIR": include,
        "DEP_CUTLASS_ROOT": root,
        "CUTLASS_ROOT": root,
        "DEP_CUTLASS_VERSION": result.version,
    }


def format_metadata(result: FetchResult) -> str:
    return "\n".join(
        f"{METADATA_PREFIX}:{k}={v}" for k, v in metadata_pairs(result)
    )


def apply_env(
    result: FetchResult,
    environ: MutableMapping[str, str] | None = None,
) -> dict[str, str]:
    """写入环境变量，返回写入的键值"""
    env = os.environ if environ is None else environ
    values = env_vars(result)
    env.update(values)
    logger.debug("已设置环境变量: %s", ", ".join(values))
    return values


def write_env_file(result: FetchResult, path: str | Path) -> None:
    """以 KEY=VALUE 行追加到 env 文件"""
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    with p.open("a", encoding="utf-8", newline="\n") as f:
        for k, v in env_vars(result).items():
            f.write(f"{k}={v}\n")
    logger.info("环境变量已写入: %s", p)


def publish(
    result: FetchResult,
    *,
    environ: MutableMapping[str, str] | None = None,
    env_file: str | Path | None = None,
) -> dict[str, str]:
    """设置环境变量并可选写入 env 文件"""
    values = apply_env(result, environ)
    if env_file:
        write_env_file(result, env_file)
    return values
