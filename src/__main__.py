"""Allow `python -m src` by running the GitLab CI entry point."""

from src.cli import main

main()
