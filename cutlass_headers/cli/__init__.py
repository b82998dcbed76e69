"""cutlass-headers 命令行接口

命令按用途拆分为子模块，各自注册到 main group。
"""

import os

import click

from cutlass_headers import __version__
from cutlass_headers.utils.logger import setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="cutlass-headers")
def main() -> None:
    """cutlass-headers - 拉取并缓存 CUTLASS 头文件"""
    setup_logging(
        level=os.getenv("CUTLASS_LOG_LEVEL", "INFO"),
        json_output=os.getenv("CUTLASS_LOG_JSON", "") == "1",
    )


# 注册子命令
from cutlass_headers.cli.cmd_fetch import register as _reg_fetch  # noqa: E402
from cutlass_headers.cli.cmd_cache import register as _reg_cache  # noqa: E402

_reg_fetch(main)
_reg_cache(main)
