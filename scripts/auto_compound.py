# scripts/auto_compound.py

"""
Run one harvest -> swap -> add liquidity -> stake cycle for a configured pool.

Usage (from project root):

    python -m scripts.auto_compound                 # first pool in the config
    python -m scripts.auto_compound --pool CAKE-BNB
    python -m scripts.auto_compound --index 2 --config auto-compound.json

The wallet key, explorer API keys and optional MongoDB history are read from
the environment (see .env.example).

Exit status is 0 when the run completed (compounded or not) and 1 when it
aborted. An aborted run logs the error kind and, when a transaction was
already submitted, its hash so the position can be reconciled by hand.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from config import get_settings
from core.services.amount_math import format_units
from core.services.exceptions import AutoCompoundError
from core.use_cases.auto_compound_usecase import AutoCompoundUseCase

logger = logging.getLogger("auto_compound")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Harvest farm rewards and compound them back into the LP position."
    )
    selector = parser.add_mutually_exclusive_group()
    selector.add_argument("--pool", dest="pool_name", help="Pool name as written in the config file.")
    selector.add_argument("--index", dest="pool_index", type=int, help="Pool position in the config file (0-based).")
    parser.add_argument(
        "--config",
        dest="config_path",
        help="Path to the pools JSON file. Defaults to AUTO_COMPOUND_CONFIG.",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, get_settings().LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
    )

    try:
        use_case = AutoCompoundUseCase.from_settings(
            pool_name=args.pool_name,
            pool_index=args.pool_index,
            config_path=args.config_path,
        )
        run = use_case.run()
    except AutoCompoundError as exc:
        logger.error("Run aborted (%s): %s", exc.kind, exc)
        tx_hash = getattr(exc, "tx_hash", None)
        if tx_hash:
            logger.error("Last transaction: %s", tx_hash)
        return 1

    if run.compounded:
        logger.info("Compounded %s LP into pool %s", format_units(run.lp_minted), run.pool)
    else:
        logger.info("Pool %s: nothing left to compound after the swap", run.pool)
    return 0


if __name__ == "__main__":
    sys.exit(main())
