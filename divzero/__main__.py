"""
divzero/__main__.py
===================

Allows ``python -m divzero <dump files> [options]``.
"""

from divzero.main import main

if __name__ == "__main__":
    raise SystemExit(main())
