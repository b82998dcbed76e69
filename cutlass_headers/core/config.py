"""拉取配置

环境变量只在边界处（FetcherConfig.from_env）读取一次，
之后整个流水线只依赖显式传入的 FetcherConfig。
可选地叠加 YAML 配置文件，环境变量优先于文件。
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Mapping
from dataclasses import dataclass, field, fields, replace
from pathlib import Path

import yaml

from cutlass_headers._version import __version__
from cutlass_headers.core.exceptions import ConfigurationError
from cutlass_headers.core.version import normalize_pin, target_version
from cutlass_headers.utils.yaml_io import load_yaml

logger = logging.getLogger(__name__)

# 输入环境变量
ENV_OVERRIDE_DIR = "CUTLASS_DIR"
ENV_RETRIES = "CUTLASS_DOWNLOAD_RETRIES"
ENV_TIMEOUT = "CUTLASS_DOWNLOAD_TIMEOUT"
ENV_CACHE_HOME = "CUTLASS_HOME"
ENV_VERSION_PIN = "CUTLASS_VERSION"

DEFAULT_RETRIES = 3
DEFAULT_TIMEOUT = 120
DEFAULT_ARCHIVE_URL = (
    "https://github.com/NVIDIA/cutlass/archive/refs/tags/{tag}.tar.gz"
)
DEFAULT_REPO_URL = "https://github.com/NVIDIA/cutlass.git"
DEFAULT_LIBRARY_NAME = "cutlass"
DEFAULT_NAMESPACE = "cutlass-headers"

_STR_FIELDS = frozenset((
    "package_version", "version_pin", "override_dir", "cache_root",
    "cache_home", "archive_url_template", "repo_url", "library_name",
    "namespace",
))


@dataclass
class FetcherConfig:
    """拉取流水线配置"""

    package_version: str = __version__
    version_pin: str = ""          # CUTLASS_VERSION，非空时替代 package_version
    override_dir: str = ""         # CUTLASS_DIR
    cache_root: str = ""           # 显式缓存根目录，直接包含各版本目录
    cache_home: str = ""           # CUTLASS_HOME
    user_cache_dir: str = ""       # 平台用户缓存目录，from_env 时计算
    retries: int = DEFAULT_RETRIES
    timeout: int = DEFAULT_TIMEOUT
    archive_url_template: str = DEFAULT_ARCHIVE_URL
    repo_url: str = DEFAULT_REPO_URL
    library_name: str = DEFAULT_LIBRARY_NAME
    namespace: str = DEFAULT_NAMESPACE

    # 文件中无法映射到字段的配置项
    extra: dict = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.retries < 1:
            raise ConfigurationError(f"下载尝试次数必须 >= 1: {self.retries}")
        if self.timeout <= 0:
            raise ConfigurationError(f"下载超时必须 > 0: {self.timeout}")

    @property
    def resolved_version(self) -> str:
        """要拉取的三段式 CUTLASS 版本"""
        if self.version_pin:
            return normalize_pin(self.version_pin)
        return target_version(self.package_version)

    def archive_url(self, version: str) -> str:
        return self.archive_url_template.format(tag=f"v{version}", version=version)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> FetcherConfig:
        """仅从环境变量构建配置"""
        return cls().with_env(environ)

    @classmethod
    def from_file(
        cls,
        path: str | Path,
        environ: Mapping[str, str] | None = None,
    ) -> FetcherConfig:
        """从 YAML 文件加载，再叠加环境变量；文件不存在则只用环境变量"""
        try:
            data = load_yaml(path)
        except (yaml.YAMLError, ValueError) as e:
            raise ConfigurationError(f"配置文件无效: {path} - {e}") from e
        known = {f.name for f in fields(cls)} - {"extra", "user_cache_dir"}
        matched = {k: v for k, v in data.items() if k in known}
        extra = {k: v for k, v in data.items() if k not in known}
        for key in ("retries", "timeout"):
            if key in matched:
                matched[key] = _parse_positive_int(key, str(matched[key]))
        # YAML 会把 3.5 之类的版本号解析成 float
        for key in _STR_FIELDS & matched.keys():
            matched[key] = "" if matched[key] is None else str(matched[key])
        cfg = cls(**matched)
        cfg.extra = extra
        if data:
            logger.info("配置已加载: %s", path)
        return cfg.with_env(environ)

    def with_env(self, environ: Mapping[str, str] | None = None) -> FetcherConfig:
        """叠加环境变量（非空值才生效），返回新对象"""
        env = os.environ if environ is None else environ
        changes: dict[str, object] = {
            "user_cache_dir": self.user_cache_dir or platform_cache_dir(env),
        }
        if env.get(ENV_OVERRIDE_DIR):
            changes["override_dir"] = env[ENV_OVERRIDE_DIR]
        if env.get(ENV_CACHE_HOME):
            changes["cache_home"] = env[ENV_CACHE_HOME]
        if env.get(ENV_VERSION_PIN):
            changes["version_pin"] = env[ENV_VERSION_PIN]
        if env.get(ENV_RETRIES):
            changes["retries"] = _parse_positive_int(ENV_RETRIES, env[ENV_RETRIES])
        if env.get(ENV_TIMEOUT):
            changes["timeout"] = _parse_positive_int(ENV_TIMEOUT, env[ENV_TIMEOUT])
        return replace(self, **changes)

    def to_dict(self) -> dict:
        from dataclasses import asdict
        return asdict(self)


def _parse_positive_int(name: str, raw: str) -> int:
    try:
        value = int(raw.strip())
    except ValueError:
        raise ConfigurationError(f"{name} 必须是正整数: {raw!r}") from None
    if value <= 0:
        raise ConfigurationError(f"{name} 必须是正整数: {raw!r}")
    return value


def platform_cache_dir(
    environ: Mapping[str, str],
    platform: str = sys.platform,
) -> str:
    """平台用户缓存目录，无法确定时返回空字符串

      - Windows: %LOCALAPPDATA%
      - macOS:   ~/Library/Caches
      - 其他:    $XDG_CACHE_HOME 或 ~/.cache
    """
    if platform.startswith("win"):
        return environ.get("LOCALAPPDATA", "")
    home = environ.get("HOME", "")
    if platform == "darwin":
        return str(Path(home) / "Library" / "Caches") if home else ""
    if environ.get("XDG_CACHE_HOME"):
        return environ["XDG_CACHE_HOME"]
    return str(Path(home) / ".cache") if home else ""
