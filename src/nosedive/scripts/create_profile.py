"""Create a profile identity and print a bearer token for it."""
from __future__ import annotations

import argparse
import sys

from nosedive.core.security import create_access_token
from nosedive.db.session import SessionLocal
from nosedive.models import Profile


def main() -> None:
    parser = argparse.ArgumentParser(description="Create a profile and issue a token")
    parser.add_argument("handle", help="Public handle for the new profile")
    args = parser.parse_args()

    handle = args.handle.strip().lower()
    db = SessionLocal()
    try:
        if db.query(Profile).filter(Profile.handle == handle).first() is not None:
            print(f"[create_profile] ERROR: handle {handle!r} is taken", file=sys.stderr)
            sys.exit(1)
        profile = Profile(handle=handle)
        db.add(profile)
        db.commit()
        print(f"[create_profile] id={profile.id} handle={profile.handle}")
        print(create_access_token(profile.id))
    finally:
        db.close()


if __name__ == "__main__":
    main()
