"""Presentation layer - plan, report and state formatting."""

from .formatter import format_plan, format_report, format_state_list, format_state_show, format_step, to_json

__all__ = ["format_plan", "format_report", "format_state_list", "format_state_show", "format_step", "to_json"]
