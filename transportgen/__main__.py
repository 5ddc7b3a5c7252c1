"""Entry point: python -m transportgen

Scans ./pkg/service (or --in) and writes transport code beside each
annotated interface.
"""

from __future__ import annotations

from .cli import main

if __name__ == "__main__":
    main()
