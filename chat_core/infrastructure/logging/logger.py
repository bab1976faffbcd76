"""JSON-lines 文件日志。

每条记录一行 JSON：ts / level / name / msg，再合并调用方通过
``extra={"extra": {...}}`` 传入的字段（trace_id、message_id 等）。
开启 log_redact_content 后，msg 与 extra 中的长文本（payload、error）都会被截断，
避免把对话内容完整写进日志。
"""

import json
import logging
from pathlib import Path
from datetime import datetime, timezone
from typing import Any, Dict

from chat_core.config.settings import settings


REDACT_LIMIT = 64


class JsonFormatter(logging.Formatter):
    def __init__(self, redact: bool = False):
        super().__init__()
        self.redact = redact

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "name": record.name,
            "msg": self._clip(record.getMessage()),
        }
        extra = getattr(record, "extra", None)
        if isinstance(extra, dict):
            for key, value in extra.items():
                payload[key] = self._clip(value) if isinstance(value, str) else value
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)

    def _clip(self, text: str) -> str:
        if self.redact:
            return (text or "")[:REDACT_LIMIT]
        return text


def setup_logger(cfg=None) -> logging.Logger:
    cfg = cfg or settings
    logger = logging.getLogger("chat_core")
    level = logging.getLevelName(str(cfg.log_level).upper())
    logger.setLevel(level if isinstance(level, int) else logging.INFO)
    if logger.handlers:
        return logger
    log_dir = Path(cfg.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    fh = logging.FileHandler(log_dir / cfg.log_file, encoding="utf-8")
    fh.setFormatter(JsonFormatter(redact=cfg.log_redact_content))
    logger.addHandler(fh)
    return logger


logger = setup_logger()
