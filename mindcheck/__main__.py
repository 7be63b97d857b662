"""Allow `python -m mindcheck`."""

from mindcheck.cli import main


if __name__ == "__main__":
    main()
