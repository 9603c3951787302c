"""Allow ``python -m card_overlay`` to launch the overlay service."""

from __future__ import annotations

import sys


def main() -> None:
    from card_overlay import run

    sys.exit(run(sys.argv[1:]))


if __name__ == "__main__":
    main()
