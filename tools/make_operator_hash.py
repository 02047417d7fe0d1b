from __future__ import annotations

import getpass
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from iceorders.auth import hash_password  # noqa: E402


def main() -> None:
    password = getpass.getpass("Operator password: ")
    if not password:
        raise SystemExit("Empty password, nothing to hash")
    if getpass.getpass("Repeat: ") != password:
        raise SystemExit("Passwords do not match")

    print("\nAdd this to your .env:\n")
    print(f"OPERATOR_PASSWORD_HASH={hash_password(password)}")


if __name__ == "__main__":
    main()
