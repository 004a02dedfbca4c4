"""Run the API server with ``python -m adal_core``."""

from adal_core.api import main

main()
