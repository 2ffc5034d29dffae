from __future__ import annotations

import sys

from riskdash.cli import main as cli_main
from riskdash.exceptions import RiskDashError


def main() -> None:
    try:
        cli_main()
    except RiskDashError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        print()
        sys.exit(130)


if __name__ == "__main__":
    main()
