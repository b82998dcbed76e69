"""包版本号

CUTLASS 目标版本由此推导（见 core.version.target_version），
升级 CUTLASS 只需修改这里。
"""

__version__ = "4.2.1"
