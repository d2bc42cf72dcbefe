# logger.py
import logging
import os
import inspect
from typing import Optional
from dotenv import load_dotenv

load_dotenv()
default_log_level = "INFO"  # 預設日誌等級
# EASISTENT_LOG_LEVEL 優先，其次沿用通用的 LOG_LEVEL
LOG_LEVEL = (os.getenv("EASISTENT_LOG_LEVEL") or os.getenv("LOG_LEVEL") or default_log_level).upper()
LOG_FORMAT = "%(asctime)s [%(levelname)s] [{name}] %(message)s"
DATE_FORMAT = "%H:%M:%S"


def _caller_module_name(depth: int = 2) -> str:
    frame = inspect.stack()[depth]
    module = inspect.getmodule(frame[0])
    return module.__name__ if module else "easistent_timetable_core"


def get_logger(logger_level: str = "INFO", name: Optional[str] = None) -> logging.Logger:
    """取得模組專用的 logger

    Args:
        logger_level: logger 本身的等級
        name: logger 名稱，未提供時使用呼叫端的模組名稱

    handler 的輸出等級由 EASISTENT_LOG_LEVEL / LOG_LEVEL 控制，
    同一個 logger 只會掛一個 handler。
    """
    name = name or _caller_module_name()
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, logger_level.upper(), logging.INFO))

    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setLevel(getattr(logging, LOG_LEVEL, logging.INFO))
        handler.setFormatter(logging.Formatter(LOG_FORMAT.format(name=name), datefmt=DATE_FORMAT))
        logger.addHandler(handler)
        # 避免與 root logger 重複輸出
        logger.propagate = False

    return logger
