"""Package entry point for ``python -m speech_sync``.

WHY: Users run the tool as ``python -m speech_sync timeline "..."``
without installing the console script.

HOW: Delegates to the CLI's main() function.
"""

from speech_sync.cli import main

if __name__ == "__main__":
    main()
