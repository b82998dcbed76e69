"""远程地址检查

归档 URL 和 git 仓库地址都来自可被用户改写的配置，
访问网络或启动 git 之前先在这里拦截明显无效的地址。
"""

from __future__ import annotations

from urllib.parse import urlsplit

from cutlass_headers.core.exceptions import ConfigurationError

REMOTE_SCHEMES = ("https", "http")


def check_remote_url(url: str, *, context: str = "") -> str:
    """确认 url 指向 http(s) 远程主机，返回主机名（供日志使用）

    file://、ftp:// 以及本地路径都会被拒绝。
    """
    where = f" ({context})" if context else ""
    parts = urlsplit(url)
    if parts.scheme.lower() not in REMOTE_SCHEMES:
        raise ConfigurationError(
            f"不允许的 URL 协议 '{parts.scheme}'{where}，"
            f"仅支持 {'/'.join(REMOTE_SCHEMES)}: {url}"
        )
    if not parts.hostname:
        raise ConfigurationError(f"URL 缺少主机名{where}: {url}")
    return parts.hostname
