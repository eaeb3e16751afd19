"""稼働中のアプリケーションからレンダリング済みコンテンツを取得する HTTP クライアント。"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Protocol
from urllib.parse import urljoin

import requests
from charset_normalizer import from_bytes as detect_charset

GENERATOR_USER_AGENT = "Site2Static"

logger = logging.getLogger(__name__)


class FetchError(RuntimeError):
    """通信エラー・非成功ステータス・タイムアウトをまとめて表す例外。"""

    def __init__(self, url: str, reason: str) -> None:
        self.url = url
        self.reason = reason
        super().__init__(f"{url} の取得に失敗しました: {reason}")


class Fetcher(Protocol):
    def fetch_text(self, url: str) -> str: ...

    def fetch_bytes(self, url: str) -> bytes: ...


def create_session() -> requests.Session:
    """生成器からのリクエストであることを示すヘッダーを付与したセッションを返します。"""

    session = requests.Session()
    session.headers.update({"User-Agent": GENERATOR_USER_AGENT})
    return session


def decode_body(body: bytes, declared: str | None) -> str:
    if declared:
        try:
            return body.decode(declared)
        except (LookupError, UnicodeDecodeError):
            logger.debug("宣言された文字コード %s で復号できませんでした。推定を試みます。", declared)
    best = detect_charset(body).best()
    if best is not None:
        return str(best)
    return body.decode("utf-8", errors="replace")


class HttpFetcher:
    """ベース URL に対する GET を行うフェッチャー。

    セッションの設定は最初のリクエストより前に完了させ、以降は変更しません。
    """

    def __init__(
        self,
        base_url: str,
        timeout: float,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/") + "/"
        self.timeout = timeout
        self.session = session or create_session()

    def absolute_url(self, url: str) -> str:
        return urljoin(self.base_url, url.lstrip("/"))

    def _get(self, url: str) -> requests.Response:
        target = self.absolute_url(url)
        try:
            response = self.session.get(target, timeout=self.timeout)
            response.raise_for_status()
        except requests.Timeout as exc:
            raise FetchError(target, f"タイムアウト ({self.timeout} 秒)") from exc
        except requests.RequestException as exc:
            raise FetchError(target, str(exc)) from exc
        return response

    def fetch_text(self, url: str) -> str:
        response = self._get(url)
        declared = None
        if "charset" in response.headers.get("Content-Type", "").lower():
            declared = response.encoding
        return decode_body(response.content, declared)

    def fetch_bytes(self, url: str) -> bytes:
        return self._get(url).content

    def close(self) -> None:
        self.session.close()


class RunContext:
    """生成サイクルをまたいで共有するフェッチャーとキャンセル信号。

    生成 → 設定 → N 回実行 → ``close`` というライフサイクルを明示的に扱います。
    キャンセル信号はイベントループに束縛されないため、``asyncio.run`` を複数回
    またいで再利用でき、別スレッドやシグナルハンドラーからも ``cancel`` できます。
    """

    def __init__(self, fetcher: Fetcher) -> None:
        self.fetcher = fetcher
        self._cancel = threading.Event()

    @classmethod
    def for_server(cls, base_url: str, timeout: float) -> "RunContext":
        return cls(HttpFetcher(base_url, timeout))

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def cancel(self) -> None:
        self._cancel.set()

    async def wait_cancelled(self, timeout: float) -> bool:
        """キャンセルされるか timeout 秒経過するまで待機し、キャンセル済みかを返します。"""

        return await asyncio.to_thread(self._cancel.wait, timeout)

    def close(self) -> None:
        close = getattr(self.fetcher, "close", None)
        if callable(close):
            close()
