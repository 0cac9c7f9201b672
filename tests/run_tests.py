#!/usr/bin/env python3
"""
Test runner for the modelkit test suite.

Usage:
    python tests/run_tests.py                    # Run all tests
    python tests/run_tests.py --unit             # Run unit tests only
    python tests/run_tests.py -k persistence     # Run test files matching a keyword
    python tests/run_tests.py --verbose          # Verbose output
"""

import sys
import subprocess
import argparse
from pathlib import Path


def run_tests(test_type=None, keyword=None, verbose=False):
    """Run each test file under pytest in its own process."""
    test_dir = Path(__file__).parent
    test_path = test_dir / test_type if test_type else test_dir

    test_files = sorted(test_path.rglob("test_*.py"))
    if keyword:
        test_files = [f for f in test_files if keyword in f.name]

    if not test_files:
        print(f"No test files found in {test_path}")
        return False

    success = True
    for test_file in test_files:
        print(f"\n{'='*60}")
        print(f"Running {test_file.name}")
        print(f"{'='*60}")

        result = subprocess.run(
            [sys.executable, "-m", "pytest", str(test_file), "-q"],
            capture_output=True, text=True
        )

        if result.returncode == 0:
            print(f"✅ {test_file.name} passed")
            if verbose and result.stdout:
                print(result.stdout)
        else:
            print(f"❌ {test_file.name} failed")
            print(result.stdout)
            if result.stderr:
                print("STDERR:")
                print(result.stderr)
            success = False

    return success


def main():
    """Main test runner."""
    parser = argparse.ArgumentParser(description="Run modelkit tests")
    parser.add_argument("--unit", action="store_true", help="Run unit tests only")
    parser.add_argument("-k", "--keyword", help="Only run test files whose name contains this keyword")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")

    args = parser.parse_args()

    test_type = "unit" if args.unit else None

    print("🧪 modelkit Test Suite")
    print("=" * 60)

    success = run_tests(test_type, args.keyword, args.verbose)

    print("\n" + "=" * 60)
    if success:
        print("🎉 All tests passed!")
        sys.exit(0)
    else:
        print("❌ Some tests failed!")
        sys.exit(1)


if __name__ == "__main__":
    main()
