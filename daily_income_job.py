# daily_income_job.py
# Usage: python daily_income_job.py   (schedule once a day, e.g. from cron)
import sys

from app import create_app
from ledger.errors import LedgerError
from ledger.services import get_services
from logger import settlement_logger


def main():
    app = create_app()
    with app.app_context():
        settlement_logger.info("Starting daily income distribution job...")
        try:
            result = get_services().settlement.run()
        except LedgerError as e:
            settlement_logger.error(f"Error in daily income distribution: {e}")
            return 1

        settlement_logger.info(f"Daily income distribution finished: {result.to_dict()}")
        return 0 if result.ok else 1


if __name__ == "__main__":
    sys.exit(main())
