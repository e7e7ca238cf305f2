"""Package entry point for ``python -m podcast_search``."""

from podcast_search.cli import main

if __name__ == "__main__":
    main()
