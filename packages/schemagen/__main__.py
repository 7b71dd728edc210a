"""Entry point for python -m schemagen"""

from schemagen.cli import schemagen_main

schemagen_main()
