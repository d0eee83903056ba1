# config/tools/validate_config.py

import sys           # for exit codes
from pprint import pprint  # for structured printing

# make src discoverable if running as a script
from pathlib import Path
# __file__ is .../config/tools/validate_config.py
# parents[2] is the project root; append ROOT/src
PROJECT_ROOT = Path(__file__).resolve().parents[2]
sys.path.append(str(PROJECT_ROOT / "src"))

from env.loader import load_config  # import our loader


def main() -> None:
    """Load and print the resolved configuration, failing fast on errors."""
    path = Path(sys.argv[1]) if len(sys.argv) > 1 else None
    try:
        config = load_config(path)
    except Exception as e:                   # catch *any* error for debugging
        print("Config validation FAILED:", file=sys.stderr)
        print(repr(e), file=sys.stderr)
        sys.exit(1)                          # non-zero exit: CI will mark as failed

    print("Config validation OK.")
    print("\nProfile:", config.name)
    print("\nData dir:", config.paths.root.resolve())
    print("\nTiming:")
    pprint(config.timing)
    print("\nThreat reflex:")
    pprint(config.threat)
    print("\nStuck reflex:")
    pprint(config.stuck)
    print("\nCombat:")
    pprint(config.combat)


if __name__ == "__main__":
    main()
