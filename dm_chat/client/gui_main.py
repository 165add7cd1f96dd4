"""Entry point for the PyQt GUI client."""
import sys

from .gui.windows import ChatApplication


def main() -> None:
    sys.exit(ChatApplication().run())


if __name__ == "__main__":
    main()
