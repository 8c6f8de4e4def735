"""
Structured Logging Configuration Module

Provides JSON-formatted structured logging for ledger operations. Modules log
through logging.getLogger(__name__); setup_logging configures the shared
"bryxcoin" parent logger once per process.
"""

import logging
import json
from datetime import datetime, timezone
from typing import Optional


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging"""
    
    def format(self, record):
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "action": getattr(record, 'action', None),
            "address": getattr(record, 'address', None),
            "sequence_index": getattr(record, 'sequence_index', None),
            "extra": getattr(record, 'extra', None)
        }
        
        # Remove None values
        log_entry = {k: v for k, v in log_entry.items() if v is not None}
        
        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)
            
        return json.dumps(log_entry, default=str)


TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def setup_logging(level: str = "INFO", logger_name: str = "bryxcoin",
                  log_format: str = "json") -> logging.Logger:
    """
    Setup structured logging for the application.
    
    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        logger_name: Name of the logger
        log_format: "json" for one JSON object per line, "text" otherwise
        
    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(logger_name)
    
    # Remove existing handlers to avoid duplicates
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
    
    handler = logging.StreamHandler()
    if log_format.lower() == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))
    
    logger.addHandler(handler)
    logger.setLevel(getattr(logging, level.upper()))
    logger.propagate = False
    
    return logger


def log_action(logger: logging.Logger, level: str, message: str,
               action: Optional[str] = None, address: Optional[str] = None,
               sequence_index: Optional[int] = None,
               extra: Optional[dict] = None):
    """
    Log a ledger action with structured data.
    
    Args:
        logger: Logger instance
        level: Log level (info, warning, error, etc.)
        message: Log message
        action: Action being performed (append, pull, push, reject, ...)
        address: Address the action concerns, if any
        sequence_index: Sequence index of the affected entry, if any
        extra: Additional structured data
    """
    fields = {}
    if action:
        fields['action'] = action
    if address:
        fields['address'] = address
    if sequence_index is not None:
        fields['sequence_index'] = sequence_index
    if extra:
        fields['extra'] = extra
    
    logger.log(getattr(logging, level.upper()), message, extra=fields)
