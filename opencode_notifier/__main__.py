"""
Entry point for running the notifier as a module.

Usage:
    python -m opencode_notifier run -- opencode
    python -m opencode_notifier events events.jsonl
    python -m opencode_notifier check
"""

from .cli import main

if __name__ == "__main__":
    main()
