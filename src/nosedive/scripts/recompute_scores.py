"""Recompute every cached reputation score.

Run after changing ``REP_*`` tunables so stored scores reflect the new
prior, weights or half-life::

    python -m nosedive.scripts.recompute_scores
"""
from __future__ import annotations

import argparse
import logging
import sys

from nosedive.core.settings import settings
from nosedive.db.session import SessionLocal
from nosedive.services.scoring import ScoreAggregator

logger = logging.getLogger(__name__)


def recompute(dry_run: bool = False) -> int:
    """Recompute all scores; rolls back instead of committing when ``dry_run``."""
    db = SessionLocal()
    try:
        updated = ScoreAggregator(db).recompute_all()
        if dry_run:
            db.rollback()
        else:
            db.commit()
        return updated
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def main() -> None:
    parser = argparse.ArgumentParser(description="Recompute cached reputation scores")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Compute everything but roll the transaction back.",
    )
    args = parser.parse_args()
    logging.basicConfig(level=settings.log_level.upper())

    try:
        updated = recompute(dry_run=args.dry_run)
    except Exception as exc:
        print(f"[recompute_scores] ERROR: {exc}", file=sys.stderr)
        sys.exit(1)
    suffix = " (dry run)" if args.dry_run else ""
    print(f"[recompute_scores] recomputed {updated} scores{suffix}")


if __name__ == "__main__":
    main()
