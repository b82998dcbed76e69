"""CLI — 本地缓存查询命令（不触发下载）"""

from __future__ import annotations

import click

from cutlass_headers.cli.cmd_fetch import load_config
from cutlass_headers.core.cache import HeaderCache


def register(group: click.Group) -> None:
    group.add_command(show_path)
    group.add_command(list_versions)


@click.command(name="path")
@click.option("--version", "version", default=None, help="指定 CUTLASS 版本")
@click.option("--cache-root", default=None, help="缓存根目录")
def show_path(version: str | None, cache_root: str | None) -> None:
    """显示已缓存版本的 include 目录"""
    cfg = load_config(None, version, cache_root)
    cache = HeaderCache.for_config(cfg)
    ver = cfg.resolved_version
    slot = cache.lookup(ver)
    if slot is None:
        raise click.ClickException(f"本地没有缓存: {ver} ({cache.slot(ver)})")
    click.echo(str(slot / "include"))


@click.command(name="versions")
@click.option("--cache-root", default=None, help="缓存根目录")
def list_versions(cache_root: str | None) -> None:
    """列出本地已缓存的 CUTLASS 版本"""
    cfg = load_config(None, cache_root=cache_root)
    cache = HeaderCache.for_config(cfg)
    versions = cache.list_versions()
    if not versions:
        click.echo(f"没有已缓存的版本: {cache.root}")
        return
    current = cfg.resolved_version
    for v in versions:
        marker = " <- 当前" if v == current else ""
        click.echo(f"  {v}{marker}")
