"""site2static の命名ポリシーおよび生成設定モデル群。"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional, Sequence

DEFAULT_FILE_NAME = "index.html"
DEFAULT_PAGE_EXTENSION = ".html"
DEFAULT_FILE_EXCLUSIONS: tuple[str, ...] = ("index", "default")
DEFAULT_HTTP_TIMEOUT = 100.0


class ConfigurationError(RuntimeError):
    """生成処理の開始前に検出される設定不備。"""


def _merge_exclusions(values: Iterable[str]) -> tuple[str, ...]:
    """除外名を大文字小文字を無視して重複排除します。"""

    seen: set[str] = set()
    merged: list[str] = []
    for raw in values:
        text = (raw or "").strip()
        if not text:
            raise ConfigurationError("既定ファイルの除外名に空の値は指定できません。")
        key = text.casefold()
        if key in seen:
            continue
        seen.add(key)
        merged.append(text)
    return tuple(merged)


def default_timestamp() -> datetime:
    """実行サマリー用に現在時刻 (UTC) を返します。"""

    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class NamingPolicy:
    """ルートから出力ファイル名を決めるための命名ポリシー。"""

    default_file_name: str = DEFAULT_FILE_NAME
    page_file_extension: str = DEFAULT_PAGE_EXTENSION
    default_file_exclusions: Sequence[str] = DEFAULT_FILE_EXCLUSIONS
    always_create_default_file: bool = False
    routes_are_case_sensitive: bool = False

    def __post_init__(self) -> None:
        extension = (self.page_file_extension or "").strip()
        if extension and not extension.startswith("."):
            object.__setattr__(self, "page_file_extension", f".{extension}")
        object.__setattr__(
            self, "default_file_exclusions", tuple(self.default_file_exclusions or ())
        )

    def validate(self) -> None:
        """必須項目が空であれば ConfigurationError を送出します。"""

        if not (self.default_file_name or "").strip():
            raise ConfigurationError("既定ファイル名 (default_file_name) が指定されていません。")
        if not (self.page_file_extension or "").strip(". "):
            raise ConfigurationError("ページ拡張子 (page_file_extension) が指定されていません。")
        if any(not (name or "").strip() for name in self.default_file_exclusions):
            raise ConfigurationError("既定ファイルの除外名に空の値は指定できません。")

    def is_excluded(self, segment: str) -> bool:
        key = segment.rstrip("/").casefold()
        return any(key == name.casefold() for name in self.default_file_exclusions)

    @classmethod
    def from_mapping(cls, values: dict | None) -> "NamingPolicy":
        values = dict(values or {})
        kwargs: dict = {}
        if "defaultFileName" in values or "default_file_name" in values:
            kwargs["default_file_name"] = values.get("defaultFileName", values.get("default_file_name"))
        if "pageFileExtension" in values or "page_file_extension" in values:
            kwargs["page_file_extension"] = values.get(
                "pageFileExtension", values.get("page_file_extension")
            )
        exclusions = values.get("defaultFileExclusions", values.get("default_file_exclusions"))
        if exclusions is not None:
            kwargs["default_file_exclusions"] = _merge_exclusions(exclusions)
        always = values.get("alwaysCreateDefaultFile", values.get("always_create_default_file"))
        if always is not None:
            kwargs["always_create_default_file"] = bool(always)
        sensitive = values.get("caseSensitiveRoutes", values.get("routes_are_case_sensitive"))
        if sensitive is not None:
            kwargs["routes_are_case_sensitive"] = bool(sensitive)
        return cls(**kwargs)


@dataclass(slots=True)
class GeneratorConfig:
    """静的ファイル生成の実行全体を束ねる設定。"""

    destination_root: Path
    base_url: str
    update_links: bool = True
    optimize_content: bool = True
    regeneration_interval: float | None = None
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    summary_path: Path | None = None
    created_at: datetime = field(default_factory=default_timestamp)

    def validate(self) -> None:
        """I/O を始める前に設定の整合性を検証します。"""

        if self.destination_root is None or not str(self.destination_root).strip():
            raise ConfigurationError("出力先ディレクトリが指定されていません。")
        if not Path(self.destination_root).is_dir():
            raise ConfigurationError(
                f"出力先ディレクトリが存在しません: {self.destination_root}"
            )
        if not (self.base_url or "").strip():
            raise ConfigurationError("取得元サーバーのベース URL が指定されていません。")
        if self.regeneration_interval is not None and self.regeneration_interval <= 0:
            raise ConfigurationError("再生成間隔には 0 より大きい秒数を指定してください。")
        if self.http_timeout <= 0:
            raise ConfigurationError("HTTP タイムアウトには 0 より大きい秒数を指定してください。")

    @classmethod
    def from_args(
        cls,
        destination_root: Path,
        base_url: str,
        dont_update_links: bool = False,
        dont_optimize_content: bool = False,
        regeneration_interval: Optional[float] = None,
        http_timeout: Optional[float] = None,
        summary_path: Optional[Path] = None,
    ) -> "GeneratorConfig":
        return cls(
            destination_root=Path(destination_root),
            base_url=base_url.strip(),
            update_links=not dont_update_links,
            optimize_content=not dont_optimize_content,
            regeneration_interval=regeneration_interval,
            http_timeout=http_timeout if http_timeout is not None else DEFAULT_HTTP_TIMEOUT,
            summary_path=summary_path,
        )
