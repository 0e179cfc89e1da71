#!/usr/bin/env python3
"""
Source-checkout entrypoint.

Allows applying mods without installing the package:
  python3 config_mods.py -r path/to/project ...
"""

import os
import sys

# 未安装时把 `src/` 加入 sys.path。
_HERE = os.path.dirname(os.path.abspath(__file__))
_SRC = os.path.join(_HERE, "src")
if _SRC not in sys.path:
    sys.path.insert(0, _SRC)

# 以 `config_mods` 名称被导入时表现为包，避免遮蔽 `src/config_mods/`。
__path__ = [os.path.join(_SRC, "config_mods")]


def main(argv: list[str] | None = None) -> int:
    from config_mods.cli import main as _main

    return _main(argv)


if __name__ == "__main__":
    raise SystemExit(main())
