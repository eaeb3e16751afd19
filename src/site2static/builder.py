"""リソースを取得・変換して静的ファイルとして書き出す中核オーケストレーター。"""

from __future__ import annotations

import asyncio
import json
import logging
import signal
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .config import ConfigurationError, GeneratorConfig
from .fetching import FetchError, RunContext
from .links import LinkRewriter
from .optimizers import OptimizerSet, default_optimizers, select_optimizer
from .paths import InvalidRouteError, resolve_resource_path
from .resources import Resource, ResourceCatalog, ResourceKind

STOP_SIGNALS = tuple(getattr(signal, name) for name in ("SIGINT", "SIGTERM") if hasattr(signal, name))


@dataclass(slots=True)
class GenerationResult:
    written: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    cancelled: bool = False

    @property
    def succeeded(self) -> bool:
        return not self.failed and not self.cancelled


class StaticSiteBuilder:
    """取得・リンク書き換え・最適化・書き出しを統括する逐次パイプライン。

    リソースはカタログ順に 1 件ずつ処理し、ページを先に、その他のリソースを
    後に扱います。1 件の失敗で全体を止めることはありません。
    """

    def __init__(
        self,
        config: GeneratorConfig,
        catalog: ResourceCatalog,
        context: RunContext,
        optimizers: OptimizerSet | None = None,
    ) -> None:
        config.validate()
        catalog.policy.validate()
        if config.optimize_content and optimizers is None:
            raise ConfigurationError("最適化が有効ですが、最適化エンジンが指定されていません。")
        self.config = config
        self.catalog = catalog
        self.context = context
        self.optimizers = optimizers
        self.cycles = 0
        self._root = Path(config.destination_root)
        self._logger = logging.getLogger(self.__class__.__module__ + "." + self.__class__.__name__)
        self._summary_base = {
            "destination_root": str(config.destination_root),
            "base_url": config.base_url,
            "created_at": config.created_at.isoformat(),
        }

    async def run(self) -> GenerationResult:
        """カタログ全体を 1 サイクル分生成します。"""

        result = GenerationResult()
        if self.context.cancelled:
            result.cancelled = True
            return result
        pages = self.catalog.pages
        self._logger.info(
            "静的ファイルの生成を開始します (ページ %d 件, その他 %d 件, 出力先: %s)",
            len(pages),
            len(self.catalog.other_resources),
            self._root,
        )
        self._update_summary("started", pages=len(pages), others=len(self.catalog.other_resources))
        rewriter = LinkRewriter(pages, self.catalog.policy) if self.config.update_links else None

        queue: list[Resource] = []
        if self.catalog.skip_pages:
            self._logger.info("ページの生成はスキップ設定のため行いません。")
        else:
            queue.extend(pages)
        queue.extend(r for r in self.catalog.other_resources if not self.catalog.is_skipped(r))

        for resource in queue:
            if self.context.cancelled:
                self._logger.info("キャンセルが要求されたため生成を中断します。")
                result.cancelled = True
                break
            await self._process(resource, rewriter, result)

        self._logger.info(
            "生成が完了しました (書き出し %d 件, スキップ %d 件, 失敗 %d 件)",
            len(result.written),
            len(result.skipped),
            len(result.failed),
        )
        self._update_summary(
            "completed",
            written=len(result.written),
            skipped=len(result.skipped),
            failed=result.failed,
            cancelled=result.cancelled,
        )
        return result

    async def run_page(self, page: Resource) -> GenerationResult:
        """1 ページのみを再生成します。リンク書き換えにはカタログ全体を使います。"""

        if page.kind is not ResourceKind.PAGE:
            raise ValueError(f"ページ以外のリソースは指定できません: {page.route}")
        result = GenerationResult()
        if self.context.cancelled:
            result.cancelled = True
            return result
        self._logger.info("ページを再生成します: %s", page.url)
        rewriter = (
            LinkRewriter(self.catalog.pages, self.catalog.policy)
            if self.config.update_links
            else None
        )
        await self._process(page, rewriter, result)
        return result

    async def run_periodic(self) -> GenerationResult:
        """再生成間隔ごとに ``run`` を繰り返します。初回は即時に実行します。"""

        interval = self.config.regeneration_interval
        while True:
            result = await self.run()
            self.cycles += 1
            if interval is None or self.context.cancelled:
                return result
            self._logger.info("%s 秒後に再生成します (%d 回目完了)。", interval, self.cycles)
            try:
                stopped = await self.context.wait_cancelled(interval)
            except asyncio.CancelledError:
                # 待機中のスレッドを解放してから中断を伝える
                self.context.cancel()
                raise
            if stopped:
                self._logger.info("停止要求を受け取ったため定期生成を終了します。")
                return result

    async def _process(
        self,
        resource: Resource,
        rewriter: LinkRewriter | None,
        result: GenerationResult,
    ) -> None:
        url = resource.url
        try:
            out_path = resolve_resource_path(resource, self._root, self.catalog.policy)
        except InvalidRouteError as exc:
            self._logger.error("出力パスを決定できないためスキップします: %s (%s)", url, exc)
            result.failed.append(url)
            self._update_summary("resource", url=url, status="failed")
            return
        short_name = self._short_name(out_path)
        self._logger.debug("処理中: %s -> %s", url, short_name)

        if resource.kind is ResourceKind.PAGE:
            self._remove_existing(out_path)
        if not self._ensure_parent(out_path):
            result.failed.append(url)
            self._update_summary("resource", url=url, path=short_name, status="failed")
            return

        try:
            content = await self._fetch(resource)
        except FetchError as exc:
            self._logger.error("コンテンツの取得に失敗したためスキップします: %s (%s)", url, exc.reason)
            result.failed.append(url)
            self._update_summary("resource", url=url, path=short_name, status="failed")
            return
        except Exception as exc:  # pragma: no cover - unexpected fetcher error
            self._logger.error("コンテンツの取得中に例外が発生しました: %s", url, exc_info=exc)
            result.failed.append(url)
            self._update_summary("resource", url=url, path=short_name, status="failed")
            return
        if content is None or (isinstance(content, str) and not content.strip()) or len(content) == 0:
            self._logger.warning("コンテンツが空のため書き出しません: %s (%s)", url, short_name)
            result.skipped.append(url)
            self._update_summary("resource", url=url, path=short_name, status="skipped")
            return

        if rewriter is not None and resource.kind is ResourceKind.PAGE:
            self._logger.debug("href を書き換えます: %s", short_name)
            content = rewriter.rewrite(content)

        if self.config.optimize_content and not resource.skip_optimization:
            content = self._optimize(resource, content, out_path)

        try:
            await asyncio.to_thread(self._write, resource, out_path, content)
        except (OSError, UnicodeError) as exc:
            self._logger.error("ファイルの書き出しに失敗しました: %s (%s)", short_name, exc, exc_info=exc)
            result.failed.append(url)
            self._update_summary("resource", url=url, path=short_name, status="failed")
            return
        self._logger.info("書き出しました: %s -> %s (%d)", url, short_name, len(content))
        result.written.append(url)
        self._update_summary("resource", url=url, path=short_name, status="written")

    async def _fetch(self, resource: Resource) -> str | bytes:
        fetcher = self.context.fetcher
        method = fetcher.fetch_bytes if resource.kind is ResourceKind.BIN else fetcher.fetch_text
        self._logger.debug("コンテンツを取得します: %s", resource.url)
        return await asyncio.to_thread(method, resource.url)

    def _optimize(self, resource: Resource, content: Any, out_path: Path) -> Any:
        if self.optimizers is None:
            self._logger.warning("最適化エンジンが設定されていないため最適化を行いません: %s", resource.url)
            return content
        optimizer = select_optimizer(resource, out_path, self.optimizers)
        short_name = self._short_name(out_path)
        self._logger.debug("最適化エンジン %s を使用します: %s", optimizer.name, short_name)
        outcome = optimizer.execute(content)
        if outcome.has_warnings:
            self._logger.warning(
                "最適化で警告が報告されました: %s (%s)",
                short_name,
                "; ".join(str(issue) for issue in outcome.warnings),
            )
        if outcome.has_errors:
            self._logger.error(
                "最適化に失敗したため元のコンテンツを使用します: %s (%s)",
                short_name,
                "; ".join(str(issue) for issue in outcome.errors),
            )
            return content
        return outcome.content

    def _write(self, resource: Resource, out_path: Path, content: str | bytes) -> None:
        if isinstance(content, bytes):
            out_path.write_bytes(content)
            return
        with out_path.open("w", encoding=resource.output_encoding.codec, newline="") as stream:
            stream.write(content)

    def _remove_existing(self, out_path: Path) -> None:
        try:
            out_path.unlink(missing_ok=True)
        except OSError as exc:
            self._logger.warning("既存ファイルを削除できませんでした: %s (%s)", out_path, exc)

    def _ensure_parent(self, out_path: Path) -> bool:
        try:
            out_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            self._logger.error("出力先ディレクトリを作成できませんでした: %s (%s)", out_path.parent, exc)
            return False
        return True

    def _short_name(self, out_path: Path) -> str:
        try:
            return out_path.relative_to(self._root).as_posix()
        except ValueError:
            return str(out_path)

    def _update_summary(self, stage: str, **extra: Any) -> None:
        if self.config.summary_path is None:
            return
        payload = dict(self._summary_base)
        payload.update(extra)
        payload["stage"] = stage
        summary_path = Path(self.config.summary_path)
        summary_path.parent.mkdir(parents=True, exist_ok=True)
        with summary_path.open("a", encoding="utf-8") as stream:
            stream.write(json.dumps(payload, ensure_ascii=False))
            stream.write("\n")


def _prepare(
    config: GeneratorConfig,
    catalog: ResourceCatalog,
    context: RunContext | None,
    optimizers: OptimizerSet | None,
) -> tuple[StaticSiteBuilder, RunContext, bool]:
    owns_context = context is None
    if context is None:
        context = RunContext.for_server(config.base_url, config.http_timeout)
    if optimizers is None and config.optimize_content:
        optimizers = default_optimizers()
    try:
        builder = StaticSiteBuilder(config, catalog, context, optimizers)
    except Exception:
        if owns_context:
            context.close()
        raise
    return builder, context, owns_context


def generate_site(
    config: GeneratorConfig,
    catalog: ResourceCatalog,
    context: RunContext | None = None,
    optimizers: OptimizerSet | None = None,
) -> GenerationResult:
    builder, context, owns_context = _prepare(config, catalog, context, optimizers)
    try:
        if config.regeneration_interval is not None:
            return asyncio.run(_run_until_stopped(builder, context))
        return asyncio.run(builder.run())
    finally:
        if owns_context:
            context.close()


async def _run_until_stopped(builder: StaticSiteBuilder, context: RunContext) -> GenerationResult:
    """SIGINT/SIGTERM を受けたら RunContext をキャンセルしつつ定期生成を実行します。"""

    loop = asyncio.get_running_loop()
    logger = logging.getLogger(__name__)
    installed: list[signal.Signals] = []
    for signum in STOP_SIGNALS:
        try:
            loop.add_signal_handler(signum, _request_stop, context, signum)
        except (NotImplementedError, RuntimeError, ValueError) as exc:
            # Windows やメインスレッド以外のループでは登録できない
            logger.debug("シグナルハンドラーを登録できませんでした: %s (%s)", signum, exc)
            continue
        installed.append(signum)
    try:
        return await builder.run_periodic()
    finally:
        for signum in installed:
            loop.remove_signal_handler(signum)


def _request_stop(context: RunContext, signum: signal.Signals) -> None:
    logging.getLogger(__name__).info("停止シグナル %s を受け取りました。", signal.Signals(signum).name)
    context.cancel()


def generate_page(
    config: GeneratorConfig,
    catalog: ResourceCatalog,
    url: str,
    context: RunContext | None = None,
    optimizers: OptimizerSet | None = None,
) -> GenerationResult | None:
    page = catalog.find_page_for_url(url)
    if page is None:
        logging.getLogger(__name__).warning("指定された URL に対応するページがありません: %s", url)
        return None
    builder, context, owns_context = _prepare(config, catalog, context, optimizers)
    try:
        return asyncio.run(builder.run_page(page))
    finally:
        if owns_context:
            context.close()
