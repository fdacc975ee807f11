#!/usr/bin/env python3
"""
Test runner script for the gateway adapters.
Runs all tests in the tests/ directory with proper configuration.
"""

import os
import sys
import subprocess
from pathlib import Path

TEST_GROUPS = {
    "trexle": ["tests/test_trexle.py"],
    "stripe": ["tests/test_stripe.py"],
    "contract": ["tests/test_adapter_contract.py", "tests/test_normalization.py"],
    "unit": [
        "tests/test_adapters.py",
        "tests/test_models.py",
        "tests/test_normalization.py",
        "tests/test_registry.py",
    ],
    "transport": ["tests/test_transport.py"],
}


def main():
    """Run all tests with pytest."""
    project_root = Path(__file__).parent
    sys.path.insert(0, str(project_root))

    # Never let real gateway credentials reach the test run
    test_env = {
        key: value
        for key, value in os.environ.items()
        if key not in ("TREXLE_API_KEY", "STRIPE_SECRET_KEY")
    }

    pytest_args = [
        sys.executable, '-m', 'pytest',
        '-v',                    # Verbose output
        '--tb=short',            # Short traceback format
        '--durations=10',        # Show 10 slowest tests
    ]

    # Add coverage if available
    try:
        import pytest_cov  # noqa: F401
        pytest_args.extend([
            '--cov=gateways',
            '--cov-report=term-missing',
        ])
        print("Running tests with coverage analysis...")
    except ImportError:
        print("Running tests without coverage (install pytest-cov for coverage)")

    if len(sys.argv) > 1:
        test_type = sys.argv[1].lower()
        if test_type not in TEST_GROUPS:
            print(f"Unknown test type: {test_type}")
            print(f"Available types: {', '.join(TEST_GROUPS)}")
            return 1
        pytest_args.extend(TEST_GROUPS[test_type])
        print(f"Running {test_type} tests only...")
    else:
        pytest_args.append('tests/')
        print("Running all tests...")

    try:
        import pytest  # noqa: F401
    except ImportError as e:
        print(f"Missing required test dependency: {e}")
        print("Install with: pip install -e .[test]")
        return 1

    try:
        result = subprocess.run(
            pytest_args,
            env=test_env,
            cwd=project_root,
            timeout=300  # 5 minute timeout
        )
    except subprocess.TimeoutExpired:
        print("\nTests timed out after 5 minutes")
        return 1
    except KeyboardInterrupt:
        print("\nTests interrupted by user")
        return 1

    if result.returncode == 0:
        print("\nAll tests passed!")
    else:
        print(f"\nTests failed with exit code: {result.returncode}")
    return result.returncode


if __name__ == "__main__":
    sys.exit(main())
