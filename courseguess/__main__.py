"""
Package entry point.

Allows running the application via:

    python -m courseguess

This simply forwards execution to courseguess.cli.main().
"""

from courseguess.cli import main

if __name__ == "__main__":
    main()
