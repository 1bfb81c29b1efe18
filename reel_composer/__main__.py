"""Package entry point for ``python -m reel_composer``.

Delegates to the CLI's main() function.
"""

from reel_composer.cli import main

if __name__ == "__main__":
    main()
