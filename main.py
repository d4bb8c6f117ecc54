"""
mcp-gcal — Entry Point.

`python main.py` starts the MCP server on stdio.
`python main.py api` starts the REST API instead.
"""

import sys

if __name__ == "__main__":
    if sys.argv[1:2] == ["api"]:
        from mcp_gcal.interfaces.rest_api import main
    else:
        from mcp_gcal.interfaces.mcp_server import main
    main()
