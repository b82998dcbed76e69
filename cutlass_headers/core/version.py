"""版本映射

包自身的版本号决定要拉取的 CUTLASS 版本:
  4.2.0-rc.1      -> 4.2.0
  3.9.2-beta.2+exp -> 3.9.2
  4.2.0.1         -> 4.2.0

不做数值校验；不足三段时原样返回截断结果（如 "4.2" -> "4.2"）。
"""

from __future__ import annotations

import re

_PRERELEASE_RE = re.compile(r"[-+]")


def target_version(version: str) -> str:
    """去掉预发布/构建元数据后取前三段"""
    core = _PRERELEASE_RE.split(version, maxsplit=1)[0]
    return ".".join(core.split(".")[:3])


def normalize_pin(pin: str) -> str:
    """显式版本钉（CUTLASS_VERSION）允许带前缀 v，如 v3.5.1"""
    pin = pin.strip()
    if pin[:1] in ("v", "V"):
        pin = pin[1:]
    return target_version(pin)


def release_tag(version: str) -> str:
    return f"v{version}"
