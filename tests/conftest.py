"""Make ``incidence_app`` importable from a plain checkout.

The suite runs against the source tree, so the repository root goes on
``sys.path`` when the package has not been installed.
"""

from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
