"""Allow ``python -m doccache``."""

from doccache.cli.app import main

if __name__ == "__main__":
    main()
