"""Main entry point for the pkgscout MCP server."""

from pkgscout.mcp_server import main, mcp, set_config_path

# Expose mcp object for MCP inspector
__all__ = ["mcp", "main", "set_config_path"]

if __name__ == "__main__":
    main()
