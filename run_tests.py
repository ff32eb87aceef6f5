#!/usr/bin/env python3
"""
테스트 실행 스크립트

Usage:
    python run_tests.py               # 모든 테스트 실행
    python run_tests.py --unit        # 단위 테스트만 실행
    python run_tests.py --integration # 통합 테스트만 실행
    python run_tests.py --coverage    # 커버리지 포함하여 실행
"""

import argparse
import subprocess
import sys
from pathlib import Path

PYTEST = [sys.executable, "-m", "pytest", "-v", "--tb=short"]


def run_command(cmd, description=""):
    """명령어 실행"""
    print(f"\n{'=' * 60}")
    print(f"{description}")
    print(f"{'=' * 60}")
    print(f"실행 명령어: {' '.join(cmd)}\n")

    try:
        subprocess.run(cmd, check=True)
        print(f"\n{description} 성공")
        return True
    except subprocess.CalledProcessError as e:
        print(f"\n{description} 실패 (exit code: {e.returncode})")
        return False


def main():
    parser = argparse.ArgumentParser(description="테스트 실행 스크립트")
    parser.add_argument("--unit", action="store_true", help="단위 테스트만 실행")
    parser.add_argument("--integration", action="store_true", help="통합 테스트만 실행")
    parser.add_argument("--coverage", action="store_true", help="커버리지 포함하여 실행")
    parser.add_argument("--quick", action="store_true", help="빠른 테스트 (실패 시 중단)")
    parser.add_argument("--install", action="store_true", help="의존성 설치")
    args = parser.parse_args()

    print(f"프로젝트 디렉토리: {Path(__file__).parent.absolute()}")

    success = True

    if args.install:
        success &= run_command(
            [sys.executable, "-m", "pip", "install", "-e", ".[test]"], "테스트 의존성 설치"
        )

    if args.unit:
        success &= run_command(PYTEST + ["tests/unit/"], "단위 테스트 실행")
    elif args.integration:
        success &= run_command(PYTEST + ["tests/integration/"], "통합 테스트 실행")
    elif args.coverage:
        success &= run_command(
            PYTEST + ["tests/", "--cov=livedrop", "--cov-report=term-missing", "--cov-report=html:htmlcov"],
            "커버리지 포함 테스트 실행"
        )
    elif args.quick:
        success &= run_command(PYTEST + ["tests/", "-x"], "빠른 테스트 실행 (실패 시 중단)")
    else:
        success &= run_command(PYTEST + ["tests/"], "전체 테스트 실행")

    return 0 if success else 1


if __name__ == "__main__":
    sys.exit(main())
