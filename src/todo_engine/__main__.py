"""Todo Engine CLI実行用エントリポイント

Usage:
    python -m todo_engine <command> [options]
"""

from .cli import main

if __name__ == "__main__":
    raise SystemExit(main())
