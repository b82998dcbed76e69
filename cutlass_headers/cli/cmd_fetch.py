"""CLI — 拉取与版本映射命令"""

from __future__ import annotations

from dataclasses import replace

import click

from cutlass_headers.core.config import FetcherConfig
from cutlass_headers.core.exceptions import CutlassHeadersError
from cutlass_headers.core.publish import format_metadata, publish
from cutlass_headers.core.resolver import resolve
from cutlass_headers.core.version import target_version


def register(group: click.Group) -> None:
    group.add_command(fetch)
    group.add_command(show_target_version)


def load_config(
    config_file: str | None,
    version: str | None = None,
    cache_root: str | None = None,
) -> FetcherConfig:
    """读取配置文件 + 环境变量，命令行参数优先"""
    try:
        cfg = (
            FetcherConfig.from_file(config_file)
            if config_file else FetcherConfig.from_env()
        )
        if version:
            cfg = replace(cfg, version_pin=version)
        if cache_root:
            cfg = replace(cfg, cache_root=cache_root)
    except CutlassHeadersError as e:
        raise click.ClickException(str(e)) from e
    return cfg


@click.command()
@click.option("--version", "version", default=None, help="指定 CUTLASS 版本（覆盖包版本映射）")
@click.option("--cache-root", default=None, help="缓存根目录")
@click.option("--config", "config_file", default=None, help="YAML 配置文件路径")
@click.option("--env-file", default=None, help="追加 KEY=VALUE 环境变量的文件（如 $GITHUB_ENV）")
def fetch(
    version: str | None, cache_root: str | None,
    config_file: str | None, env_file: str | None,
) -> None:
    """拉取 CUTLASS 头文件并输出构建元数据"""
    cfg = load_config(config_file, version, cache_root)
    try:
        result = resolve(cfg)
    except CutlassHeadersError as e:
        raise click.ClickException(str(e)) from e
    publish(result, env_file=env_file)
    click.echo(format_metadata(result))


@click.command(name="target-version")
@click.argument("version", required=False)
def show_target_version(version: str | None) -> None:
    """显示包版本映射出的 CUTLASS 版本"""
    if version:
        click.echo(target_version(version))
    else:
        click.echo(load_config(None).resolved_version)
