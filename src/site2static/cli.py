"""site2static のコマンドラインインターフェース。"""

from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import sys
from pathlib import Path
from typing import Iterable, Mapping

from .builder import GenerationResult, generate_page, generate_site
from .config import ConfigurationError, GeneratorConfig
from .env import current_generator_settings, load_env_file
from .fetching import RunContext
from .resources import ResourceCatalog, load_catalog
from .sitemap import discover_pages, merge_pages

EXIT_WHEN_DONE_ARGS = frozenset({"ssg", "ssg-only", "static-only", "exit-when-done"})
OMIT_GENERATION_ARGS = frozenset({"no-ssg"})


def _normalize_flag(raw: str) -> str:
    return raw.strip().lstrip("-/").lower()


def has_exit_when_done_arg(argv: Iterable[str] | None) -> bool:
    """生成後にホストアプリケーションを終了させる引数が含まれているかを返します。"""

    return any(_normalize_flag(arg) in EXIT_WHEN_DONE_ARGS for arg in argv or ())


def has_omit_generation_arg(argv: Iterable[str] | None) -> bool:
    """静的ファイル生成を省略する引数が含まれているかを返します。"""

    return any(_normalize_flag(arg) in OMIT_GENERATION_ARGS for arg in argv or ())


def parse_args(
    argv: Iterable[str] | None = None,
    env: Mapping[str, str] | None = None,
) -> argparse.Namespace:
    settings = current_generator_settings(env)
    parser = argparse.ArgumentParser(description="稼働中の Web アプリケーションから静的ファイルを生成します")
    parser.add_argument(
        "--base-url",
        dest="base_url",
        type=str,
        default=settings.base_url,
        help="取得元サーバーのベース URL (既定: 環境変数 SITE2STATIC_BASE_URL)",
    )
    parser.add_argument(
        "--out",
        dest="output_dir",
        type=Path,
        default=settings.destination,
        help="生成したファイルを書き出すディレクトリ (既定: 環境変数 SITE2STATIC_DESTINATION)",
    )
    parser.add_argument("--catalog", dest="catalog", type=Path, default=None, help="リソース定義 (JSON) へのパス")
    parser.add_argument("--page", dest="page", type=str, default=None, help="指定した URL のページのみを再生成")
    parser.add_argument("--summary", dest="summary", type=Path, default=None, help="実行サマリー (JSON Lines) の出力先")
    parser.add_argument("--verbose", dest="verbose", action="store_true", help="進捗ログを標準出力へ表示")

    naming_group = parser.add_argument_group("生成設定")
    naming_group.add_argument(
        "--always-default-file",
        dest="always_default_file",
        action="store_true",
        help="拡張子のないルートを常に <route>/index.html として書き出す",
    )
    naming_group.add_argument(
        "--no-link-rewrite",
        dest="no_link_rewrite",
        action="store_true",
        help="ページ内リンクの書き換えを無効化する",
    )
    naming_group.add_argument(
        "--no-optimize",
        dest="no_optimize",
        action="store_true",
        help="コンテンツの最適化 (minify) を無効化する",
    )
    naming_group.add_argument(
        "--interval",
        dest="interval",
        type=float,
        default=None,
        help="指定秒数ごとに再生成を繰り返す",
    )
    naming_group.add_argument(
        "--timeout",
        dest="timeout",
        type=float,
        default=settings.timeout,
        help="HTTP リクエストのタイムアウト秒数 (既定: 100 秒)",
    )
    naming_group.add_argument(
        "--sitemap",
        dest="sitemaps",
        action="append",
        default=[],
        help="ページを検出するサイトマップのパス (複数指定可)",
    )

    skip_group = parser.add_argument_group("スキップ設定")
    skip_group.add_argument("--skip-pages", dest="skip_pages", action="store_true", help="ページを生成しない")
    skip_group.add_argument("--skip-css", dest="skip_css", action="store_true", help="CSS を生成しない")
    skip_group.add_argument("--skip-js", dest="skip_js", action="store_true", help="JavaScript を生成しない")
    skip_group.add_argument("--skip-bin", dest="skip_bin", action="store_true", help="バイナリを生成しない")
    return parser.parse_args(list(argv) if argv is not None else None)


def main(argv: Iterable[str] | None = None) -> None:
    load_env_file()
    args = parse_args(argv)
    _validate_args(args)
    _configure_logging(args.verbose)

    try:
        catalog = _build_catalog(args)
        config = GeneratorConfig.from_args(
            args.output_dir,
            args.base_url,
            dont_update_links=args.no_link_rewrite,
            dont_optimize_content=args.no_optimize,
            regeneration_interval=args.interval,
            http_timeout=args.timeout,
            summary_path=args.summary,
        )
        config.validate()
    except (ConfigurationError, ValueError, OSError) as exc:
        print(f"[エラー] {exc}", file=sys.stderr)
        raise SystemExit(2)

    context = RunContext.for_server(config.base_url, config.http_timeout)
    try:
        if args.sitemaps:
            discovered = discover_pages(context.fetcher, args.sitemaps)
            catalog = catalog.with_resources(merge_pages(catalog.resources, discovered))
        if args.page:
            result = generate_page(config, catalog, args.page, context=context)
            if result is None:
                print(f"[エラー] 指定された URL のページが定義されていません: {args.page}", file=sys.stderr)
                raise SystemExit(2)
        else:
            result = generate_site(config, catalog, context=context)
    except KeyboardInterrupt:
        context.cancel()
        logging.getLogger(__name__).warning("中断されたため生成を停止しました。")
        result = GenerationResult(cancelled=True)
    finally:
        context.close()

    print(json.dumps(_summarize(result, config), ensure_ascii=False))
    if result.failed:
        raise SystemExit(1)


def _validate_args(args: argparse.Namespace) -> None:
    errors: list[str] = []
    if not (args.base_url or "").strip():
        errors.append("[エラー] --base-url (または SITE2STATIC_BASE_URL) を指定してください。")

    if args.output_dir is None:
        errors.append("[エラー] --out (または SITE2STATIC_DESTINATION) を指定してください。")
    elif not args.output_dir.exists():
        errors.append(f"[エラー] 出力ディレクトリが見つかりません: {args.output_dir}")
    elif not args.output_dir.is_dir():
        errors.append(f"[エラー] 出力パスがディレクトリではありません: {args.output_dir}")

    if args.catalog is None and not args.sitemaps:
        errors.append("[エラー] --catalog または --sitemap のいずれかを指定してください。")
    elif args.catalog is not None and not args.catalog.is_file():
        errors.append(f"[エラー] カタログファイルが見つかりません: {args.catalog}")

    if args.interval is not None and args.interval <= 0:
        errors.append("[エラー] --interval には 0 より大きい秒数を指定してください。")
    if args.timeout is not None and args.timeout <= 0:
        errors.append("[エラー] --timeout には 0 より大きい秒数を指定してください。")
    if args.page is not None and args.interval is not None:
        errors.append("[エラー] --page と --interval は同時に指定できません。")

    if errors:
        for message in errors:
            print(message, file=sys.stderr)
        print("取得元 URL・出力ディレクトリ・カタログを確認してください。", file=sys.stderr)
        raise SystemExit(2)

    args.output_dir = args.output_dir.resolve()
    if args.catalog is not None:
        args.catalog = args.catalog.resolve()


def _build_catalog(args: argparse.Namespace) -> ResourceCatalog:
    catalog = load_catalog(args.catalog) if args.catalog is not None else ResourceCatalog()
    policy = catalog.policy
    if args.always_default_file:
        policy = dataclasses.replace(policy, always_create_default_file=True)
    policy.validate()
    return dataclasses.replace(
        catalog,
        policy=policy,
        skip_pages=catalog.skip_pages or args.skip_pages,
        skip_css=catalog.skip_css or args.skip_css,
        skip_js=catalog.skip_js or args.skip_js,
        skip_bin=catalog.skip_bin or args.skip_bin,
    )


def _summarize(result: GenerationResult, config: GeneratorConfig) -> dict:
    summary = {
        "written": len(result.written),
        "skipped": len(result.skipped),
        "failed": len(result.failed),
        "cancelled": result.cancelled,
        "output": str(config.destination_root),
    }
    if result.failed:
        summary["failed_urls"] = list(result.failed)
    return summary


def _configure_logging(verbose: bool) -> None:
    level = logging.INFO if verbose else logging.WARNING
    logging.basicConfig(level=level, format="%(asctime)s [%(levelname)s] %(message)s", datefmt="%Y-%m-%d %H:%M:%S")


if __name__ == "__main__":
    main()
