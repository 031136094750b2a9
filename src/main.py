"""
AutoWsus - WSUS and SUSDB maintenance pipeline

Declines and approves catalog entries, purges stale SUSDB metadata, keeps
indexes healthy, backs up the database and exports content for
disconnected sites.
"""

import sys
from autowsus.interface.cli import main


if __name__ == "__main__":
    sys.exit(main())
