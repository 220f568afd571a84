#!/usr/bin/env python3
"""
VidVoice Error Handler

Centralized error reporting. Nothing in the voice pipeline is fatal:
transient I/O failures are reported and surfaced as a status message,
corrupted data is deleted, unsupported capabilities become no-ops and
invalid user input is rejected with a message.
"""

import logging
import traceback
from datetime import datetime
from typing import Dict, List, Optional, Any
from enum import Enum
from dataclasses import dataclass, field


class ErrorSeverity(Enum):
    """Error severity levels."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Error categories for classification."""
    AUDIO = "audio"
    NETWORK = "network"
    STORAGE = "storage"
    CAPABILITY = "capability"
    CONFIGURATION = "configuration"
    USER_INPUT = "user_input"
    SYSTEM = "system"


# Categories that are expected to clear up on their own
TRANSIENT_CATEGORIES = {ErrorCategory.NETWORK, ErrorCategory.AUDIO}


@dataclass
class ErrorReport:
    """Detailed error report."""
    error_id: str
    timestamp: datetime
    category: ErrorCategory
    severity: ErrorSeverity
    message: str
    exception_type: str
    traceback_text: str
    context: Dict[str, Any] = field(default_factory=dict)
    user_message: Optional[str] = None

    @property
    def transient(self) -> bool:
        return self.category in TRANSIENT_CATEGORIES


class ErrorHandler:
    """Categorizes, logs and keeps a bounded history of errors."""

    def __init__(self, logger: logging.Logger):
        self.logger = logger

        # Error tracking
        self.error_reports: List[ErrorReport] = []
        self.max_error_history = 100

        # Error statistics
        self.error_counts: Dict[str, int] = {}

    def handle_error(
        self,
        error: Exception,
        context: Optional[Dict[str, Any]] = None,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        category: Optional[ErrorCategory] = None,
        user_message: Optional[str] = None
    ) -> ErrorReport:
        """Record an error and return its report."""
        error_report = self._create_error_report(error, context, severity, category, user_message)

        self._log_error(error_report)
        self._update_error_statistics(error_report)
        self._store_error_report(error_report)

        return error_report

    def _create_error_report(
        self,
        error: Exception,
        context: Optional[Dict[str, Any]],
        severity: ErrorSeverity,
        category: Optional[ErrorCategory],
        user_message: Optional[str]
    ) -> ErrorReport:
        error_id = f"ERR_{datetime.now().strftime('%Y%m%d_%H%M%S')}_{id(error) % 10000:04d}"

        if not category:
            category = self._categorize_error(error)

        if not user_message:
            user_message = self._generate_user_message(category)

        return ErrorReport(
            error_id=error_id,
            timestamp=datetime.now(),
            category=category,
            severity=severity,
            message=str(error),
            exception_type=type(error).__name__,
            traceback_text=traceback.format_exc(),
            context=context or {},
            user_message=user_message
        )

    def _categorize_error(self, error: Exception) -> ErrorCategory:
        """Automatically categorize an error."""
        error_str = str(error).lower()
        error_type = type(error).__name__.lower()

        if "transcription" in error_type or any(
                term in error_str for term in ["network", "connection", "timeout", "http", "transcri"]):
            return ErrorCategory.NETWORK

        if any(term in error_str for term in ["microphone", "audio", "recognition", "tts", "pyaudio"]):
            return ErrorCategory.AUDIO

        if any(term in error_str for term in ["not supported", "unsupported", "capability", "not available"]):
            return ErrorCategory.CAPABILITY

        if "json" in error_type or any(
                term in error_str for term in ["storage", "corrupt", "file", "directory", "disk"]):
            return ErrorCategory.STORAGE

        if any(term in error_str for term in ["config", "setting", "yaml", "environment"]):
            return ErrorCategory.CONFIGURATION

        if any(term in error_str for term in ["input", "command", "name", "action", "duplicate"]):
            return ErrorCategory.USER_INPUT

        return ErrorCategory.SYSTEM

    def _generate_user_message(self, category: ErrorCategory) -> str:
        """Generate a user-friendly error message."""
        messages = {
            ErrorCategory.AUDIO: "Voice input is unavailable. Please check your microphone.",
            ErrorCategory.NETWORK: "Voice recognition failed. Please try again.",
            ErrorCategory.STORAGE: "Saved data was unreadable and has been reset.",
            ErrorCategory.CAPABILITY: "That control is not supported by this player.",
            ErrorCategory.CONFIGURATION: "There's an issue with the configuration. Please check your settings.",
            ErrorCategory.USER_INPUT: "That command could not be used. Please check it and try again.",
        }
        return messages.get(category, "Something went wrong. Please try again or check the logs for details.")

    def _log_error(self, error_report: ErrorReport):
        """Log the error with appropriate level."""
        log_message = f"[{error_report.error_id}] {error_report.category.value.upper()}: {error_report.message}"

        if error_report.severity == ErrorSeverity.CRITICAL:
            self.logger.critical(f"{log_message}\n{error_report.traceback_text}")
        elif error_report.severity == ErrorSeverity.HIGH:
            self.logger.error(f"{log_message}\n{error_report.traceback_text}")
        elif error_report.severity == ErrorSeverity.MEDIUM:
            self.logger.warning(f"{log_message} | Context: {error_report.context}")
        else:
            self.logger.info(log_message)

    def _update_error_statistics(self, error_report: ErrorReport):
        error_key = f"{error_report.category.value}_{error_report.exception_type}"
        self.error_counts[error_key] = self.error_counts.get(error_key, 0) + 1

    def _store_error_report(self, error_report: ErrorReport):
        self.error_reports.append(error_report)

        if len(self.error_reports) > self.max_error_history:
            self.error_reports = self.error_reports[-self.max_error_history:]

    def get_error_summary(self) -> Dict[str, Any]:
        """Get a summary of recent errors."""
        categories: Dict[str, int] = {}
        severities: Dict[str, int] = {}

        for report in self.error_reports:
            categories[report.category.value] = categories.get(report.category.value, 0) + 1
            severities[report.severity.value] = severities.get(report.severity.value, 0) + 1

        return {
            "total_errors": len(self.error_reports),
            "recent_errors": [
                {
                    "error_id": report.error_id,
                    "timestamp": report.timestamp.isoformat(),
                    "category": report.category.value,
                    "severity": report.severity.value,
                    "message": report.message,
                }
                for report in self.error_reports[-10:]
            ],
            "error_categories": categories,
            "error_severities": severities,
        }

    def clear_error_history(self):
        self.error_reports.clear()
        self.error_counts.clear()
        self.logger.info("Error history cleared")

    def shutdown(self):
        """Log a final error summary."""
        summary = self.get_error_summary()
        self.logger.info(f"Error handler shutdown: {summary['total_errors']} errors recorded")
