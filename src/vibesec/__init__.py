"""Catch security mistakes in AI-assisted web projects while you code.

vibesec helps you:
- Find secrets exposed to the browser through NEXT_PUBLIC_ env keys
- Verify row-level security on every table your code queries
- Flag SQL-injection-prone query construction
- Keep third-party API keys out of client-side code
"""

__version__ = "0.1.0"

from vibesec.scanner.engine import ScanEngine

__all__ = ["ScanEngine", "__version__"]
