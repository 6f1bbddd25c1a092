from __future__ import annotations  # Session report package exports

from .pdf import ReportNotAvailable, generate_feedback_report_pdf

__all__ = ["ReportNotAvailable", "generate_feedback_report_pdf"]
