"""Output generation for podmover results."""

from podmover.output.generator import ReportGenerator

__all__ = ["ReportGenerator"]
