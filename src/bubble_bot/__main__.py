"""Entry point for ``python -m bubble_bot``."""

from bubble_bot.cli import main

if __name__ == "__main__":
    main()
