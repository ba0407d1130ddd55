"""Entry point for running the Kinkonnect server as a module.

Usage:
    python -m kinkonnect --data-file ~/kinkonnect.json --user <uid>
    kinkonnect-server -f ~/kinkonnect.json -u <uid>
"""

import argparse
import logging
import os


def main():
    """Main entry point for the Kinkonnect MCP server."""
    parser = argparse.ArgumentParser(
        description="Kinkonnect MCP Server - family trees, discovery and konnections via MCP",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  kinkonnect-server --data-file ~/kinkonnect.json
  kinkonnect-server -f ~/kinkonnect.json --user u123 --scan-timeout 60

Environment variables:
  KINKONNECT_DATA_FILE       JSON snapshot of the record store (default: memory only)
  KINKONNECT_USER_ID         Acting user id for the session
  KINKONNECT_SCAN_TIMEOUT    Discovery deadline in seconds (default: 300)
  KINKONNECT_DESCRIBE_MODEL  LLM used to name relationships
  KINKONNECT_LOG_LEVEL       Logging level (default: INFO)
""",
    )
    parser.add_argument(
        "--data-file",
        "-f",
        metavar="PATH",
        help="Path to the JSON data file (or set KINKONNECT_DATA_FILE env var)",
    )
    parser.add_argument(
        "--user",
        "-u",
        metavar="UID",
        help="Acting user id (or set KINKONNECT_USER_ID env var)",
    )
    parser.add_argument(
        "--scan-timeout",
        metavar="SECONDS",
        type=float,
        help="Discovery scan deadline in seconds (default: 300)",
    )
    args = parser.parse_args()

    # CLI args override env vars
    if args.data_file:
        os.environ["KINKONNECT_DATA_FILE"] = args.data_file
    if args.user:
        os.environ["KINKONNECT_USER_ID"] = args.user
    if args.scan_timeout is not None:
        os.environ["KINKONNECT_SCAN_TIMEOUT"] = str(args.scan_timeout)

    logging.basicConfig(
        level=os.getenv("KINKONNECT_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Import and initialize AFTER setting env vars
    from . import initialize, mcp

    initialize()
    mcp.run()


if __name__ == "__main__":
    main()
