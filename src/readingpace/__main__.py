"""Allow running the CLI with ``python -m readingpace``."""

from readingpace.cli import main

if __name__ == "__main__":
    main()
