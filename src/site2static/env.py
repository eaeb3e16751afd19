"""環境変数および生成器の既定値のローダー。"""

from __future__ import annotations

from dataclasses import dataclass
import logging
import os
from pathlib import Path
from typing import Mapping

DEFAULT_ENV_NAME = ".env"
BASE_URL_ENV = "SITE2STATIC_BASE_URL"
DESTINATION_ENV = "SITE2STATIC_DESTINATION"
TIMEOUT_ENV = "SITE2STATIC_TIMEOUT"
ENV_FILE_ENV = "SITE2STATIC_ENV_FILE"

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class GeneratorSettings:
    """コマンドライン引数の既定値として使う環境変数の値。"""

    base_url: str | None
    destination: Path | None
    timeout: float | None


def load_env_file(path: str | Path | None = None) -> dict[str, str]:
    """`.env` ファイルを読み込み、未設定の環境変数を補完します。

    ``path`` を省略した場合は ``SITE2STATIC_ENV_FILE``、カレントディレクトリの順に探します。
    既に設定済みの環境変数は上書きしませんが、戻り値にはファイル上の値を含めます。
    """

    env_path = _locate_env_file(path)
    if env_path is None:
        return {}
    loaded: dict[str, str] = {}
    with env_path.open(encoding="utf-8") as stream:
        for number, raw_line in enumerate(stream, start=1):
            entry = _parse_line(raw_line)
            if entry is None:
                if raw_line.strip() and not raw_line.lstrip().startswith("#"):
                    logger.debug("解釈できない行を無視します: %s:%d", env_path, number)
                continue
            key, value = entry
            os.environ.setdefault(key, value)
            loaded[key] = value
    return loaded


def current_generator_settings(source: Mapping[str, str] | None = None) -> GeneratorSettings:
    """現在の環境変数から生成器の既定値を読み取ります。"""

    env = source if source is not None else os.environ
    base_url = (env.get(BASE_URL_ENV) or "").strip() or None
    raw_destination = (env.get(DESTINATION_ENV) or "").strip()
    destination = Path(raw_destination) if raw_destination else None
    return GeneratorSettings(
        base_url=base_url,
        destination=destination,
        timeout=_parse_timeout(env.get(TIMEOUT_ENV)),
    )


def _parse_timeout(raw: str | None) -> float | None:
    if raw is None or not raw.strip():
        return None
    try:
        value = float(raw)
    except ValueError:
        logger.warning("%s の値を数値として解釈できません: %s", TIMEOUT_ENV, raw)
        return None
    if value <= 0:
        logger.warning("%s には 0 より大きい秒数を指定してください: %s", TIMEOUT_ENV, raw)
        return None
    return value


def _locate_env_file(path: str | Path | None) -> Path | None:
    if path is None:
        path = os.environ.get(ENV_FILE_ENV) or Path.cwd()
    candidate = Path(path)
    if candidate.is_dir():
        candidate /= DEFAULT_ENV_NAME
    return candidate if candidate.is_file() else None


def _parse_line(raw_line: str) -> tuple[str, str] | None:
    line = raw_line.strip()
    if line.startswith("export "):
        line = line[len("export "):]
    key, sep, value = line.partition("=")
    key = key.strip()
    if not sep or not key or key.startswith("#"):
        return None
    value = value.strip()
    if value[:1] in {'"', "'"}:
        # 引用符で囲まれた値は閉じ引用符までをそのまま使う
        closing = value.find(value[0], 1)
        if closing > 0:
            return key, value[1:closing]
        return key, value
    comment = value.find(" #")
    if comment >= 0:
        value = value[:comment].rstrip()
    return key, value
