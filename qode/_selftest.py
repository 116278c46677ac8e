def main():
    """
    Run the project's test suite with visible output and a brief environment summary.

    Usage:
        qode-selftest
    """
    import sys
    import os
    import platform
    from importlib import import_module

    print("\n=== qode self-test ===")
    try:
        import qode
        print(f"Package: qode {getattr(qode, '__version__', '0.1.0')} @ {os.path.dirname(qode.__file__)}")
    except ImportError as e:
        print("Could not import qode:", e)
        return 1

    print("Python:", platform.python_version(), "| Platform:", platform.platform())
    print("NumPy:", import_module('numpy').__version__)
    try:
        # reference values in the suite (eigenvalues, Legendre nodes) come from SciPy
        print("SciPy:", import_module('scipy').__version__)
    except ImportError:
        print("SciPy is required by the tests. Install with: pip install -e .[test]", file=sys.stderr)
        return 1

    try:
        import pytest  # type: ignore
    except ImportError:
        print("pytest is required. Install with: pip install -e .[test]", file=sys.stderr)
        return 1

    tests_path = os.path.join(os.path.dirname(os.path.dirname(__file__)), 'tests')
    if not os.path.isdir(tests_path):
        print(f"Tests directory not found: {tests_path}")
        print("If you installed non-editable, clone the repo and run tests from source.")
        return 1

    print(f"Running pytest in: {tests_path}")
    exit_code = pytest.main(["-v", tests_path])
    print("\n=== Self-test", "PASSED" if exit_code == 0 else "FAILED", f"(exit code {exit_code}) ===")
    return exit_code


if __name__ == "__main__":
    raise SystemExit(main())
