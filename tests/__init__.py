from __future__ import annotations

import os

# Headless matplotlib for tests.
os.environ.setdefault("MPLBACKEND", "Agg")
