"""Entry point for running Chorus as a module."""

from chorus.cli import app


def main() -> None:
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
