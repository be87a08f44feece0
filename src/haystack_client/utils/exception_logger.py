"""Exception log files for the Haystack client.

Unexpected failures (e.g. in the watchdog observer thread) are written as
JSON records to ``<data_dir>/logs/error_<timestamp>_<pid>.log``.
"""

import json
import os
import threading
import traceback
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional


class ExceptionLogger:
    """Process-wide exception log file."""

    _instance: Optional["ExceptionLogger"] = None

    def __init__(self, log_file_path: Path):
        self.log_file_path = log_file_path

    @classmethod
    def initialize(cls, log_dir: Path) -> "ExceptionLogger":
        """Create the process-wide logger, or return the existing one.

        Tests that need a fresh instance reset ``cls._instance = None``.
        """
        if cls._instance is not None:
            return cls._instance

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_dir.mkdir(parents=True, exist_ok=True)
        log_file_path = log_dir / f"error_{timestamp}_{os.getpid()}.log"
        log_file_path.touch()

        cls._instance = cls(log_file_path)
        return cls._instance

    @classmethod
    def get_instance(cls) -> Optional["ExceptionLogger"]:
        return cls._instance

    def log_exception(
        self,
        exception: BaseException,
        thread_name: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Append one exception record with its stack trace and context."""
        stack_trace = "".join(
            traceback.format_exception(
                type(exception), exception, exception.__traceback__
            )
        )
        log_entry = {
            "timestamp": datetime.now().isoformat(),
            "thread": thread_name or threading.current_thread().name,
            "exception_type": type(exception).__name__,
            "exception_message": str(exception),
            "stack_trace": stack_trace,
            "context": context or {},
        }

        with open(self.log_file_path, "a") as f:
            f.write(json.dumps(log_entry, indent=2))
            f.write("\n---\n")

    def install_thread_exception_hook(self) -> None:
        """Route uncaught thread exceptions into the log file."""

        def thread_exception_handler(args):
            if args.exc_value is None:
                return
            self.log_exception(
                exception=args.exc_value,
                thread_name=args.thread.name if args.thread else None,
                context={"exc_type": args.exc_type.__name__},
            )

        threading.excepthook = thread_exception_handler
