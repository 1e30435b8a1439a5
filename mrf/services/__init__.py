"""Orchestration services shared by the CLI (and any other front end)."""

from .reconcile_service import CancelToken, ProcessSummary, process_folder_metadata
from .validation_service import Validator

__all__ = ["CancelToken", "ProcessSummary", "process_folder_metadata", "Validator"]
