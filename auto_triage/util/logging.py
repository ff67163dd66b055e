"""
Structured logging for vectorizer batches, index operations and retrieval.
"""

import logging
from typing import Any, Dict, Optional


def truncate(text: Optional[str], limit: int = 50) -> str:
    """Shorten free text for log lines."""
    if text is None:
        return ""
    return text[:limit] + "..." if len(text) > limit else text


class StructuredLogger:
    """Structured logger for triage operations."""

    def __init__(self, name: str = "auto_triage"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.INFO)

        # Create handler if not already set
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def set_debug(self, enabled: bool):
        self.logger.setLevel(logging.DEBUG if enabled else logging.INFO)

    def log_operation(self, operation: str, status: str, details: Dict[str, Any] = None, level: int = logging.INFO):
        """Log a structured operation."""
        message = f"Operation: {operation}, Status: {status}"
        if details:
            message += f", Details: {details}"

        self.logger.log(level, message)

    def log_batch(self, batch: int, total_batches: int, stage: str, status: str = "success", details: Dict[str, Any] = None):
        """Log a vectorizer batch state transition."""
        log_details = {"batch": batch, "total_batches": total_batches}
        if details:
            log_details.update(details)

        level = logging.ERROR if status == "failed" else logging.INFO
        self.log_operation(f"vectorize.{stage}", status, log_details, level=level)

    def log_vector_operation(self, operation: str, record_id: str, details: Dict[str, Any] = None, status: str = "success"):
        """Log a vector operation."""
        log_details = {"record_id": record_id}
        if details:
            log_details.update(details)

        self.log_operation(f"vector.{operation}", status, log_details, level=logging.DEBUG)

    def log_retrieval(self, title: str, candidates: int, accepted: int, tokens: Optional[int] = None, status: str = "success"):
        """Log a historian retrieval result."""
        log_details = {
            "query_title": truncate(title),
            "candidates": candidates,
            "accepted": accepted,
        }
        if tokens is not None:
            log_details["tokens"] = tokens

        self.log_operation("historian.retrieve", status, log_details)

    def log_snapshot(self, operation: str, path: str, encrypted: bool, status: str = "success", details: Dict[str, Any] = None):
        """Log a vector snapshot export or import."""
        log_details = {"path": path, "encrypted": encrypted}
        if details:
            log_details.update(details)

        level = logging.ERROR if status == "failed" else logging.INFO
        self.log_operation(f"snapshot.{operation}", status, log_details, level=level)

    # Standard logging methods for compatibility
    def info(self, message: str) -> None:
        """Log an info message."""
        self.logger.info(message)

    def warning(self, message: str) -> None:
        """Log a warning message."""
        self.logger.warning(message)

    def error(self, message: str) -> None:
        """Log an error message."""
        self.logger.error(message)

    def debug(self, message: str) -> None:
        """Log a debug message."""
        self.logger.debug(message)


# Global logger instance
logger = StructuredLogger()
