"""UI layer -- Rich dashboard, output formatters, and logging setup."""

from .dashboard import (
    ProgressDisplay,
    console,
    create_histogram,
    print_config,
    print_error,
    print_final_results,
    print_header,
    print_speed_result,
)
from .log import configure_logging
from .output import (
    create_result_json,
    event_to_json,
    format_text_result,
    save_json,
    summarize_test,
)

__all__ = [
    "ProgressDisplay",
    "configure_logging",
    "console",
    "create_histogram",
    "create_result_json",
    "event_to_json",
    "format_text_result",
    "print_config",
    "print_error",
    "print_final_results",
    "print_header",
    "print_speed_result",
    "save_json",
    "summarize_test",
]
