"""Allow running as ``python -m xray_bootstrap``."""

from xray_bootstrap.cli import main

main()
