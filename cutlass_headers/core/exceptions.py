"""统一异常体系

所有拉取流程异常继承 CutlassHeadersError。
CLI 层据此输出友好提示；code 字段便于 CI 日志检索。
"""

from __future__ import annotations


class CutlassHeadersError(Exception):
    """基础异常"""

    code: str = "UNKNOWN"

    def __init__(self, message: str) -> None:
        super().__init__(message)


class ConfigurationError(CutlassHeadersError):
    """配置无效（CUTLASS_DIR 缺少 include/、数值环境变量非法等）"""

    code = "CONFIG_ERROR"


class TransientNetworkError(CutlassHeadersError):
    """单次 HTTP 下载失败，可重试"""

    code = "NETWORK_ERROR"


class ArchiveFormatError(TransientNetworkError):
    """归档解压失败，或找不到预期的顶层目录"""

    code = "ARCHIVE_ERROR"


class FallbackError(CutlassHeadersError):
    """git clone 回退失败"""

    code = "FALLBACK_ERROR"


class FatalAcquisitionError(CutlassHeadersError):
    """所有来源均失败，构建终止"""

    code = "ACQUISITION_FAILED"

    def __init__(self, message: str, details: list[str] | None = None) -> None:
        super().__init__(message)
        self.details = details or []
