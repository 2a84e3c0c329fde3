"""Entry point for the cleansweep command line."""

import sys


def main(args: list[str] | None = None) -> int:
    """Main entry point for the cleansweep CLI."""
    if args is None:
        args = sys.argv[1:]

    if not args or args[0] in ["-h", "--help", "help"]:
        print_help()
        return 0

    command = args[0]

    if command == "version":
        print_version()
        return 0
    elif command == "config":
        return run_config(args[1:])
    else:
        print(f"Unknown command: {command}")
        print_help()
        return 1


def print_help() -> None:
    """Print CLI help message."""
    print(
        """cleansweep - clean-up actions for garbage collected objects

Usage:
    python -m cleansweep <command> [options]

Commands:
    version     Show version information
    config      Configuration management
    help        Show this help message

Options:
    -h, --help  Show help message
"""
    )


def print_version() -> None:
    """Print version information."""
    from cleansweep import __version__

    print(f"cleansweep {__version__}")


def run_config(args: list[str]) -> int:
    """Run the config command."""
    from cleansweep.cli.config import run_config_command

    return run_config_command(args)


if __name__ == "__main__":
    sys.exit(main())
