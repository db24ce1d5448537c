"""cargocov - gcov-based coverage reports for Cargo projects."""

__version__ = "0.3.0"
