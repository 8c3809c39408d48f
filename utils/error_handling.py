import threading
from collections import defaultdict, deque
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Deque, Dict, List, Optional


# Custom Exception Classes
class ScraperError(Exception):
    """Base exception for all supplier search errors"""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.context = context or {}


class ConfigurationError(ScraperError):
    """Configuration-related errors"""

    pass


class UnknownSupplierError(ConfigurationError):
    """Supplier identifier with no configured profile"""

    def __init__(self, supplier: str, known: Optional[List[str]] = None):
        known = sorted(known or [])
        super().__init__(
            f"Unknown supplier '{supplier}'",
            {"supplier": supplier, "known_suppliers": known},
        )
        self.supplier = supplier


class TabAcquisitionError(ScraperError):
    """The tab platform refused to locate or create a tab"""

    pass


class TabStateError(ScraperError):
    """Illegal tab session lifecycle transition"""

    pass


class AgentUnreachableError(ScraperError):
    """No page-resident agent answered a message"""

    pass


class ParsingError(ScraperError):
    """Errors during HTML/data parsing"""

    pass


@dataclass
class ErrorContext:
    """Captures the details of a failed supplier search step"""

    supplier: Optional[str] = None
    url: Optional[str] = None
    selector: Optional[str] = None
    reason: Optional[str] = None
    timestamp: Optional[datetime] = None
    additional_data: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        if self.timestamp is None:
            self.timestamp = datetime.now()

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ErrorReporter:
    """Error aggregation for search failures, keyed by error type"""

    def __init__(self, history_size: int = 50):
        self.errors: Dict[str, Deque[Dict[str, Any]]] = defaultdict(
            lambda: deque(maxlen=history_size)
        )
        self.error_stats: Dict[str, int] = defaultdict(int)
        self._lock = threading.Lock()

    def report_error(self, error_type: str, message: str, context: Optional[ErrorContext] = None):
        """Report an error for aggregation"""
        error_record = {
            "timestamp": datetime.now(),
            "error_type": error_type,
            "message": message,
            "context": context.to_dict() if context else {},
        }

        with self._lock:
            self.errors[error_type].append(error_record)
            self.error_stats[error_type] += 1

    def generate_report(self) -> Dict[str, Any]:
        """Generate error report"""
        with self._lock:
            report = {
                "generated_at": datetime.now().isoformat(),
                "total_errors": sum(self.error_stats.values()),
                "error_types": dict(self.error_stats),
                "recent_errors": {},
            }

            # Last 10 per type
            for error_type, error_list in self.errors.items():
                report["recent_errors"][error_type] = list(error_list)[-10:]

            return report

    def clear(self) -> None:
        with self._lock:
            self.errors.clear()
            self.error_stats.clear()
