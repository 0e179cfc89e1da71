"""
`python -m config_mods` entrypoint.

The installed console script `config-mods` calls the same `config_mods.cli:main`.
"""

from .cli import main


if __name__ == "__main__":
    raise SystemExit(main())
