import sys

from lockfix.cli import main as cli_main


def main():
    """ Entrypoint when is installed via pip """
    sys.exit(cli_main())

# Development mode
if __name__ == "__main__":
    main()
