"""Allow `python -m lifewrap`."""

from lifewrap.cli.main import main

if __name__ == "__main__":  # pragma: no cover
    main()
