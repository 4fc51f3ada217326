"""Module entrypoint to run PassTool via `python -m passtool`."""

from passtool.cli import main


def run() -> None:
    """Dispatch to the console script handler."""

    main()


if __name__ == "__main__":  # pragma: no cover
    run()
