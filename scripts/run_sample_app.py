from __future__ import annotations

import sys

from sample_app.main import main

if __name__ == "__main__":
    sys.exit(main())
