"""
Utility helpers for modl.

- **logger.py**: Centralized logging configuration with colored console output
  through prompt_toolkit, a per-session rotating log file, and suppression of
  noisy third-party loggers.
"""
