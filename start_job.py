#!/usr/bin/env python3
"""
Startup script for the nationality recommendation job.
"""

import sys
from pathlib import Path

# Add src to path
src_path = Path(__file__).parent / "src"
sys.path.insert(0, str(src_path))

from housing_recs.pipeline import main  # noqa: E402

if __name__ == "__main__":
    sys.exit(main())
