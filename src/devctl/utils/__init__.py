"""Shared utilities for devctl.

Import directly from submodules:
    from devctl.utils.iso_formatter import ISO8601Formatter
    from devctl.utils.waiting import wait_for_condition
"""

__all__: list[str] = []  # Direct submodule imports required (see docstring)
