"""
Entry point for running the shim as a module.

This allows the package to be executed with: python -m mcp_shim
"""

from mcp_shim.cli import main

if __name__ == "__main__":
    main()
