"""shopqa CLI entry point.

This module enables running shopqa as:
    python -m shopqa <command>
"""

from shopqa.cli import main

if __name__ == "__main__":
    main()
