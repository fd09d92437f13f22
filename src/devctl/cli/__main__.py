"""Allow running as `python -m devctl.cli`."""

from devctl.cli import main

if __name__ == "__main__":
    main()
