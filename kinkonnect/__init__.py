"""Kinkonnect - FastMCP server for family trees, cross-tree discovery and konnections.

Users build a graph of relatives, explore it (generations, relationship paths,
tree layout) and scan other public trees for probable shared relatives.

Usage:
    kinkonnect-server --data-file ~/kinkonnect.json --user <uid>
    KINKONNECT_DATA_FILE=~/kinkonnect.json python -m kinkonnect
"""

from fastmcp import FastMCP

from .mcp_resources import register_resources
from .mcp_tools import register_tools
from .state import configure, load_store
from .telemetry import initialize_tracing

# Initialize tracing FIRST (before creating server)
# This is a no-op if KINKONNECT_TRACING_ENABLED is not set to 'true'
initialize_tracing()

mcp = FastMCP("Kinkonnect Family Tree Server")

register_tools(mcp)
register_resources(mcp)

_initialized = False


def initialize():
    """Configure from env vars and load the record store.

    Safe to call multiple times.
    """
    global _initialized
    if _initialized:
        return
    configure()
    load_store()
    _initialized = True


__all__ = ["mcp", "initialize"]
