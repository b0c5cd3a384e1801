# CUI // SP-CTI
"""Cross-platform compatibility helpers for the codemod tools."""
from tools.compat.platform_utils import (  # noqa: F401
    IS_WINDOWS,
    PLATFORM_NAME,
    ensure_utf8_console,
    get_npx_cmd,
    resolve_node_command,
    to_posix_relative,
)
