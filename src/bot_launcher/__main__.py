"""Entry point for ``python -m bot_launcher``."""

from bot_launcher.launcher import main

if __name__ == "__main__":
    main()
