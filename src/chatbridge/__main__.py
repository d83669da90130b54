"""Allow ``python -m chatbridge``."""

from chatbridge.cli.app import main

if __name__ == "__main__":
    main()
