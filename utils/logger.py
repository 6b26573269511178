"""
Logging utilities for the Smart Calendar engine
"""
import json
import logging
import sys
from datetime import datetime
from typing import Any, Dict

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
QUIET_LOGGERS = ('urllib3', 'googleapiclient', 'google.auth', 'werkzeug')


class SmartCalendarLogger:
    """Process-wide logging setup and structured tool-call records"""

    @staticmethod
    def setup_logging(log_level: str = "INFO", log_file: str = None):
        """Route the root logger to stdout and, optionally, a log file"""
        formatter = logging.Formatter(LOG_FORMAT)

        root_logger = logging.getLogger()
        root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))
        root_logger.handlers.clear()

        handlers = [logging.StreamHandler(sys.stdout)]
        if log_file:
            handlers.append(logging.FileHandler(log_file, encoding='utf-8'))
        for handler in handlers:
            handler.setFormatter(formatter)
            root_logger.addHandler(handler)

        # HTTP client and dev-server chatter
        for name in QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

        return root_logger

    @staticmethod
    def log_tool_call(tool_name: str, arguments: Dict[str, Any],
                      result: Any, processing_time: float):
        """Log a dispatched tool call with a compact result summary"""
        logger = logging.getLogger(__name__)

        if isinstance(result, list):
            result_summary = {"type": "list", "count": len(result)}
        elif isinstance(result, dict):
            result_summary = {
                "type": "object",
                "success": result.get("success"),
                "error": result.get("error"),
                "change_set_id": result.get("change_set_id"),
            }
        else:
            result_summary = {"type": type(result).__name__}

        log_entry = {
            "timestamp": datetime.now().isoformat(),
            "tool": tool_name,
            "argument_keys": sorted(arguments.keys()),
            "processing_time_seconds": round(processing_time, 4),
            "result_summary": result_summary,
        }

        logger.info(f"Tool processed: {json.dumps(log_entry, ensure_ascii=False)}")
