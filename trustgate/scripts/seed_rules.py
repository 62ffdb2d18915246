"""
Install the default governance rules. Run from project root:
  python -m trustgate.scripts.seed_rules
Rules whose (axis, action) pair already exists are left untouched.
Use --list to print the stored rules afterwards.
"""
import argparse
import sys

from trustgate.core.config import get_settings
from trustgate.core.database import SessionLocal
from trustgate.core.events import EventBus
from trustgate.services.governance import GovernanceEngine


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Seed the default TrustGate governance rules.")
    parser.add_argument("--list", action="store_true", help="Print all stored rules after seeding")
    args = parser.parse_args(argv)

    engine = GovernanceEngine.from_settings(get_settings(), SessionLocal, EventBus())
    inserted = engine.seed_default_rules()
    print(f"Inserted {inserted} default rule(s).")

    if args.list:
        for rule in engine.list_rules():
            state = "active" if rule.active else "inactive"
            print(f"{rule.axis_name} {rule.operator} {rule.threshold:g} -> {rule.action} ({state})")
    return 0


if __name__ == "__main__":
    sys.exit(main())
