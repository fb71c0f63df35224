"""Allow running as: python -m panel_bridge"""

from .cli import main

main()
