"""归档来源测试 - HTTP 重试/解压 + git clone 回退"""

from __future__ import annotations

import http.client
import subprocess
import tarfile
import urllib.error
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from cutlass_headers.core.exceptions import (
    ArchiveFormatError,
    ConfigurationError,
    FallbackError,
    TransientNetworkError,
)
from cutlass_headers.core.sources import GitCloneSource, HttpArchiveSource, backoff_delay

URL = "https://github.com/NVIDIA/cutlass/archive/refs/tags/{tag}.tar.gz"
REPO = "https://github.com/NVIDIA/cutlass.git"


def _http(opener, sleeps: list[float] | None = None, attempts: int = 3) -> HttpArchiveSource:
    recorded = sleeps if sleeps is not None else []
    return HttpArchiveSource(
        URL, max_attempts=attempts, timeout=5,
        opener=opener, sleep=recorded.append,
    )


class TestBackoff:
    @pytest.mark.parametrize(("attempt", "delay"), [(1, 0.0), (2, 2.0), (3, 4.0), (4, 8.0)])
    def test_exponential(self, attempt: int, delay: float) -> None:
        assert backoff_delay(attempt) == delay


class TestHttpArchiveSource:
    def test_url_for(self) -> None:
        assert _http(MagicMock()).url_for("4.2.1") == (
            "https://github.com/NVIDIA/cutlass/archive/refs/tags/v4.2.1.tar.gz"
        )

    def test_success_first_attempt(self, tmp_path: Path, archive_bytes, fake_response) -> None:
        opener = MagicMock(return_value=fake_response(archive_bytes))
        sleeps: list[float] = []
        artifact = _http(opener, sleeps).fetch("4.2.1", tmp_path)

        assert artifact.origin == "http"
        assert artifact.scratch == tmp_path
        assert artifact.path.name == "cutlass-4.2.1"
        assert (artifact.path / "include" / "cutlass" / "cutlass.h").is_file()
        assert opener.call_count == 1
        assert sleeps == []

    def test_request_uses_timeout_and_url(self, tmp_path: Path, archive_bytes, fake_response) -> None:
        opener = MagicMock(return_value=fake_response(archive_bytes))
        _http(opener).fetch("4.2.1", tmp_path)
        req = opener.call_args.args[0]
        assert req.full_url.endswith("/v4.2.1.tar.gz")
        assert opener.call_args.kwargs["timeout"] == 5

    def test_retries_with_backoff_then_raises_last_error(self, tmp_path: Path) -> None:
        opener = MagicMock(side_effect=urllib.error.URLError("connection refused"))
        sleeps: list[float] = []
        with pytest.raises(TransientNetworkError, match="connection refused"):
            _http(opener, sleeps).fetch("4.2.1", tmp_path)
        assert opener.call_count == 3
        assert sleeps == [2.0, 4.0]

    def test_recovers_on_second_attempt(self, tmp_path: Path, archive_bytes, fake_response) -> None:
        opener = MagicMock(side_effect=[TimeoutError("timed out"), fake_response(archive_bytes)])
        sleeps: list[float] = []
        artifact = _http(opener, sleeps).fetch("4.2.1", tmp_path)
        assert artifact.path.parent.name == "attempt-2"
        assert sleeps == [2.0]

    def test_http_error_status(self, tmp_path: Path) -> None:
        err = urllib.error.HTTPError(URL, 404, "Not Found", None, None)
        opener = MagicMock(side_effect=err)
        with pytest.raises(TransientNetworkError, match="HTTP 404"):
            _http(opener, attempts=1).fetch("9.9.9", tmp_path)

    def test_non_success_status(self, tmp_path: Path, fake_response) -> None:
        opener = MagicMock(return_value=fake_response(b"", status=503))
        with pytest.raises(TransientNetworkError, match="HTTP 503"):
            _http(opener, attempts=1).fetch("4.2.1", tmp_path)

    def test_corrupt_archive(self, tmp_path: Path, fake_response) -> None:
        opener = MagicMock(return_value=fake_response(b"definitely not gzip"))
        with pytest.raises(ArchiveFormatError, match="解压失败"):
            _http(opener, attempts=1).fetch("4.2.1", tmp_path)

    def test_corrupt_archive_is_retried(self, tmp_path: Path, fake_response) -> None:
        opener = MagicMock(return_value=fake_response(b"garbage"))
        sleeps: list[float] = []
        with pytest.raises(ArchiveFormatError):
            _http(opener, sleeps).fetch("4.2.1", tmp_path)
        assert opener.call_count == 3

    def test_missing_top_level_dir(self, tmp_path: Path, make_archive, fake_response) -> None:
        payload = make_archive(top="something-else")
        opener = MagicMock(return_value=fake_response(payload))
        with pytest.raises(ArchiveFormatError, match="顶层目录"):
            _http(opener, attempts=1).fetch("4.2.1", tmp_path)

    def test_missing_include(self, tmp_path: Path, make_archive, fake_response) -> None:
        payload = make_archive(files={"README.md": b"hi"})
        opener = MagicMock(return_value=fake_response(payload))
        with pytest.raises(ArchiveFormatError, match="include"):
            _http(opener, attempts=1).fetch("4.2.1", tmp_path)

    def test_rejects_non_http_url(self, tmp_path: Path) -> None:
        opener = MagicMock()
        src = HttpArchiveSource("file:///tmp/{tag}.tar.gz", opener=opener, sleep=lambda s: None)
        with pytest.raises(ConfigurationError, match="不允许的 URL 协议"):
            src.fetch("4.2.1", tmp_path)
        opener.assert_not_called()

    def test_truncated_body_is_retried(self, tmp_path: Path) -> None:
        resp = MagicMock()
        resp.__enter__.return_value = resp
        resp.status = 200
        resp.read.side_effect = http.client.IncompleteRead(b"partial", 1000)
        opener = MagicMock(return_value=resp)
        sleeps: list[float] = []
        with pytest.raises(TransientNetworkError, match="下载失败"):
            _http(opener, sleeps).fetch("4.2.1", tmp_path)
        assert opener.call_count == 3
        assert sleeps == [2.0, 4.0]

    def test_local_extract_error_not_retried(
        self, tmp_path: Path, archive_bytes, fake_response, monkeypatch,
    ) -> None:
        def _denied(self, *args, **kwargs):
            raise PermissionError("read-only scratch")

        monkeypatch.setattr(tarfile.TarFile, "extractall", _denied)
        opener = MagicMock(return_value=fake_response(archive_bytes))
        with pytest.raises(PermissionError):
            _http(opener).fetch("4.2.1", tmp_path)
        assert opener.call_count == 1

    def test_zero_attempts_rejected(self) -> None:
        with pytest.raises(ConfigurationError, match="尝试次数"):
            HttpArchiveSource(URL, max_attempts=0)


class TestGitCloneSource:
    def test_shallow_clone_command(self, tmp_path: Path, fake_git) -> None:
        git = fake_git()
        artifact = GitCloneSource(REPO, executor=git, timeout=9).fetch("4.2.1", tmp_path)

        assert git.commands == [[
            "git", "clone", "--depth", "1", "--branch", "v4.2.1",
            REPO, str(tmp_path / "cutlass"),
        ]]
        assert artifact.origin == "git"
        assert artifact.path == tmp_path / "cutlass"

    def test_clone_failure(self, tmp_path: Path, fake_git) -> None:
        git = fake_git(returncode=128, stderr="fatal: Remote branch v9.9.9 not found")
        with pytest.raises(FallbackError, match="rc=128.*v9.9.9"):
            GitCloneSource(REPO, executor=git).fetch("9.9.9", tmp_path)

    def test_missing_executable(self, tmp_path: Path) -> None:
        executor = MagicMock()
        executor.execute.side_effect = FileNotFoundError("git")
        with pytest.raises(FallbackError, match="找不到 git"):
            GitCloneSource(REPO, executor=executor).fetch("4.2.1", tmp_path)

    def test_timeout(self, tmp_path: Path) -> None:
        executor = MagicMock()
        executor.execute.side_effect = subprocess.TimeoutExpired(["git"], 5)
        with pytest.raises(FallbackError, match="超时"):
            GitCloneSource(REPO, executor=executor, timeout=5).fetch("4.2.1", tmp_path)

    def test_unsafe_ref_rejected(self, tmp_path: Path, fake_git) -> None:
        git = fake_git()
        with pytest.raises(FallbackError, match="非法字符"):
            GitCloneSource(REPO, executor=git).fetch("1.0;rm -rf", tmp_path)
        assert git.commands == []

    def test_clone_without_include(self, tmp_path: Path) -> None:
        executor = MagicMock()
        executor.execute.return_value = MagicMock(success=True, returncode=0, stderr="")
        with pytest.raises(FallbackError, match="include"):
            GitCloneSource(REPO, executor=executor).fetch("4.2.1", tmp_path)
