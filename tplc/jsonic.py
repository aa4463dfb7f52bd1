from __future__ import annotations

import json

from pydantic import BaseModel


def dumps(report: BaseModel) -> str:
    """
    Отчёт CLI в виде одной строки JSON.
    Не-ASCII символы (пути, сообщения) остаются как есть; в конце — перевод строки.
    """
    return json.dumps(report.model_dump(mode="json"), ensure_ascii=False) + "\n"


__all__ = ["dumps"]
