"""Index series, field summary and the per-domain analyses behind the field report."""

from __future__ import annotations

import sys
from pathlib import Path

__version__ = "0.1.0"

# campo_agent lives under src/ in a source checkout.
_SRC = Path(__file__).resolve().parents[1] / "src"
if _SRC.is_dir() and str(_SRC) not in sys.path:
    sys.path.insert(0, str(_SRC))

__all__ = ["__version__"]
