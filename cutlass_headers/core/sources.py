"""归档来源 - HTTP 归档下载 / Git 浅克隆

两个来源都实现 ArchiveSource 协议，由 resolver 按策略列表依次尝试:
- HttpArchiveSource: 下载 GitHub tag 归档（带指数退避重试）并解压
- GitCloneSource:    git clone --depth 1 回退

网络访问（opener）、等待（sleep）和子进程（executor）均可注入，
测试无需真实网络或 git。
"""

from __future__ import annotations

import gzip
import http.client
import io
import logging
import re
import subprocess
import tarfile
import time
import urllib.error
import urllib.request
import zlib
from collections.abc import Callable
from pathlib import Path
from typing import Any, Protocol

from cutlass_headers._version import __version__
from cutlass_headers.core.config import FetcherConfig
from cutlass_headers.core.exceptions import (
    ArchiveFormatError,
    ConfigurationError,
    FallbackError,
    TransientNetworkError,
)
from cutlass_headers.core.models import ORIGIN_GIT, ORIGIN_HTTP, SourceArtifact
from cutlass_headers.core.version import release_tag
from cutlass_headers.utils.net import check_remote_url
from cutlass_headers.utils.shell import CommandExecutor, LocalExecutor

logger = logging.getLogger(__name__)

_SAFE_REF_RE = re.compile(r"^[a-zA-Z0-9_.\-]+$")

Opener = Callable[..., Any]


class ArchiveSource(Protocol):
    """归档来源协议

    fetch() 把指定版本的库放进 scratch 目录，返回库根目录；
    失败时抛出 CutlassHeadersError 的子类。
    """

    name: str

    def fetch(self, version: str, scratch: Path) -> SourceArtifact:
        ...


def backoff_delay(attempt: int) -> float:
    """第 attempt 次尝试前的等待秒数（attempt 从 1 开始，首次不等待）"""
    if attempt <= 1:
        return 0.0
    return float(2 ** (attempt - 1))


class HttpArchiveSource:
    """GitHub tag 归档下载"""

    name = ORIGIN_HTTP

    def __init__(
        self,
        url_template: str,
        *,
        library_name: str = "cutlass",
        timeout: float = 120,
        max_attempts: int = 3,
        opener: Opener | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.url_template = url_template
        self.library_name = library_name
        self.timeout = timeout
        if max_attempts < 1:
            raise ConfigurationError(f"下载尝试次数必须 >= 1: {max_attempts}")
        self.max_attempts = max_attempts
        self._opener = opener or urllib.request.urlopen
        self._sleep = sleep

    @classmethod
    def from_config(cls, config: FetcherConfig, **kwargs: Any) -> HttpArchiveSource:
        return cls(
            config.archive_url_template,
            library_name=config.library_name,
            timeout=config.timeout,
            max_attempts=config.retries,
            **kwargs,
        )

    def url_for(self, version: str) -> str:
        return self.url_template.format(tag=release_tag(version), version=version)

    def fetch(self, version: str, scratch: Path) -> SourceArtifact:
        """下载并解压，最多尝试 max_attempts 次

        全部失败时抛出最后一次的 TransientNetworkError。
        """
        url = self.url_for(version)
        host = check_remote_url(url, context="archive download")

        last_error: TransientNetworkError | None = None
        for attempt in range(1, self.max_attempts + 1):
            if attempt > 1:
                delay = backoff_delay(attempt)
                logger.info("等待 %.0f 秒后重试...", delay)
                self._sleep(delay)

            logger.info(
                "下载 CUTLASS %s (第 %d/%d 次): %s",
                version, attempt, self.max_attempts, url,
            )
            try:
                payload = self._download(url)
                root = self._unpack(payload, scratch / f"attempt-{attempt}")
            except TransientNetworkError as e:
                last_error = e
                logger.warning(
                    "从 %s 下载失败 (第 %d/%d 次): %s",
                    host, attempt, self.max_attempts, e,
                )
                continue
            return SourceArtifact(path=root, scratch=scratch, origin=self.name)

        raise last_error  # type: ignore[misc]

    def _download(self, url: str) -> bytes:
        req = urllib.request.Request(
            url, headers={"User-Agent": f"cutlass-headers/{__version__}"},
        )
        try:
            with self._opener(req, timeout=self.timeout) as resp:
                status = getattr(resp, "status", 200)
                if not 200 <= status < 300:
                    raise TransientNetworkError(f"HTTP {status}: {url}")
                return resp.read()
        except urllib.error.HTTPError as e:
            raise TransientNetworkError(f"HTTP {e.code}: {url}") from e
        except (urllib.error.URLError, http.client.HTTPException, OSError) as e:
            raise TransientNetworkError(f"下载失败: {url} - {e}") from e

    def _unpack(self, payload: bytes, dest: Path) -> Path:
        """解压 gzip tar，返回以库名开头的顶层目录"""
        dest.mkdir(parents=True, exist_ok=True)
        try:
            with tarfile.open(fileobj=io.BytesIO(payload), mode="r:gz") as tf:
                tf.extractall(path=str(dest), filter="data")  # noqa: S202
        except (tarfile.TarError, EOFError, zlib.error, gzip.BadGzipFile) as e:
            raise ArchiveFormatError(f"归档解压失败: {e}") from e

        candidates = sorted(
            d for d in dest.iterdir()
            if d.is_dir() and d.name.startswith(self.library_name)
        )
        if not candidates:
            raise ArchiveFormatError(
                f"归档中找不到以 '{self.library_name}' 开头的顶层目录"
            )
        root = candidates[0]
        if not (root / "include").is_dir():
            raise ArchiveFormatError(f"归档目录缺少 include/: {root.name}")
        return root


class GitCloneSource:
    """git 浅克隆回退"""

    name = ORIGIN_GIT

    def __init__(
        self,
        repo_url: str,
        *,
        library_name: str = "cutlass",
        timeout: float = 120,
        executor: CommandExecutor | None = None,
        git: str = "git",
    ) -> None:
        self.repo_url = repo_url
        self.library_name = library_name
        self.timeout = timeout
        self._executor = executor or LocalExecutor()
        self.git = git

    @classmethod
    def from_config(cls, config: FetcherConfig, **kwargs: Any) -> GitCloneSource:
        return cls(
            config.repo_url,
            library_name=config.library_name,
            timeout=config.timeout,
            **kwargs,
        )

    def fetch(self, version: str, scratch: Path) -> SourceArtifact:
        ref = release_tag(version)
        if not _SAFE_REF_RE.match(ref):
            raise FallbackError(f"ref 包含非法字符: {ref}")
        check_remote_url(self.repo_url, context="git clone")

        target = scratch / self.library_name
        cmd = [
            self.git, "clone", "--depth", "1", "--branch", ref,
            self.repo_url, str(target),
        ]
        logger.info("尝试 git clone 回退: %s@%s", self.repo_url, ref)
        try:
            r = self._executor.execute(cmd, cwd=str(scratch), timeout=self.timeout)
        except FileNotFoundError as e:
            raise FallbackError(f"找不到 git 可执行文件 '{self.git}': {e}") from e
        except subprocess.TimeoutExpired as e:
            raise FallbackError(f"git clone 超时 ({self.timeout} 秒)") from e
        except OSError as e:
            raise FallbackError(f"无法执行 git: {e}") from e

        if not r.success:
            raise FallbackError(
                f"git clone 失败 (rc={r.returncode}): {r.stderr.strip()[:300]}"
            )
        if not (target / "include").is_dir():
            raise FallbackError(f"克隆结果缺少 include/: {target}")
        logger.info("git clone 完成: %s", target)
        return SourceArtifact(path=target, scratch=scratch, origin=self.name)
