"""Allow ``python -m template_forge``."""

from template_forge.cli import main

main()
