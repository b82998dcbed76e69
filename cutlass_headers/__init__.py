"""cutlass-headers - 构建时拉取 NVIDIA CUTLASS 头文件

CUTLASS 是纯头文件库，本包只负责把对应版本的头文件下载到本地缓存，
并把 include 路径暴露给下游构建（环境变量 / 构建元数据 / Python API）。
不提供任何绑定。

在 setup.py 中使用:
    import cutlass_headers

    Extension(..., include_dirs=[cutlass_headers.get_include()])
"""

from __future__ import annotations

from cutlass_headers._version import __version__
from cutlass_headers.core.config import FetcherConfig
from cutlass_headers.core.models import FetchResult
from cutlass_headers.core.resolver import resolve
from cutlass_headers.core.version import target_version

__all__ = [
    "__version__",
    "FetchResult",
    "FetcherConfig",
    "get_include",
    "resolve",
    "target_version",
]


def get_include() -> str:
    """返回 CUTLASS include 目录（必要时先下载）"""
    return str(resolve(FetcherConfig.from_env()).include_dir)
