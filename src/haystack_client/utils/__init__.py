"""Utility helpers."""

from .exception_logger import ExceptionLogger

__all__ = ["ExceptionLogger"]
