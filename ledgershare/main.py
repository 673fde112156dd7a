"""
main.py

Development server for the LedgerShare API.

Notes:
  - Requires a reachable Redis server
  - API v1 endpoints at /api/v1/ with Swagger docs at /api/v1/docs
  - The in-process reclamation scheduler starts unless SCHEDULER_ENABLED=false
"""

import os

from ledgershare.app_factory import create_app

app = create_app()

if __name__ == "__main__":
    host = os.getenv("FLASK_HOST", "0.0.0.0")
    port = int(os.getenv("FLASK_PORT", 8000))
    debug = os.getenv("FLASK_DEBUG", "false").lower() == "true"

    # The reloader would start a second scheduler in the child process
    app.run(host=host, port=port, debug=debug, use_reloader=False)
