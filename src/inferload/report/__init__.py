from __future__ import annotations

from inferload.report.renderer import ResponsePrinter, render_summary

__all__ = ["ResponsePrinter", "render_summary"]
