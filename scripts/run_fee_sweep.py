"""

회비 정기 실행(Sweep) 스크립트.

- 하루 1회 cron 으로 실행하는 용도
- 예약 규칙 활성화 → 활성 규칙 청구 생성 → 연체 처리 순서로 실행
- 결과 요약을 로그로 출력하고, 규칙 단위 실패가 있으면 종료 코드 1

사용 방법
- 가상환경 접속
- (.venv) ~\backend~$ python -m scripts.run_fee_sweep
- 특정 기준일 재실행      : python -m scripts.run_fee_sweep --as-of 2026-11-01
- 활성화 대상만 확인      : python -m scripts.run_fee_sweep --dry-run

crontab 예시
- 10 0 * * * cd /srv/coop && .venv/bin/python -m scripts.run_fee_sweep

"""

import argparse
import datetime
import logging
import sys

from dotenv import load_dotenv
load_dotenv()

from coop.core.logging import setup_logging
from coop.db.session import SessionLocal
from coop.services.fee_rules import utc_today
from coop.services.fee_scheduler import activate_scheduled_rules, run_sweep

logger = logging.getLogger("scripts.run_fee_sweep")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Activate scheduled fee rules and generate fee applications")
    parser.add_argument(
        "--as-of",
        type=datetime.date.fromisoformat,
        default=None,
        help="기준일 (YYYY-MM-DD), 기본값은 오늘(UTC)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="활성화될 예약 규칙만 출력하고 아무것도 변경하지 않음",
    )
    return parser.parse_args(argv)


def main(argv=None) -> int:
    setup_logging()
    args = parse_args(argv)
    as_of = args.as_of or utc_today()

    db = SessionLocal()
    try:
        if args.dry_run:
            result = activate_scheduled_rules(db, as_of=as_of, dry_run=True)
            logger.info("Dry run: %d fee rules would be activated %s", result.activated_count, result.rule_ids)
            return 0

        result = run_sweep(db, as_of=as_of)
        for error in result.errors:
            logger.error(error)
        return 1 if result.errors else 0

    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
