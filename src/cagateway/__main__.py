"""Allow ``python -m cagateway``."""

from cagateway.cli.main import main

main()
