#!/usr/bin/env python
"""
schemagen CLI - schema-driven multi-target code generator

Usage:
    python main.py generate [schemagen.yaml] [--jobs N] [--fail-fast] [--dry-run]
    python main.py validate [schemagen.yaml]
    python main.py inspect [schemagen.yaml]
    python main.py version
"""

import sys
from pathlib import Path

# packages/ 配下をインポート可能にする（未インストール時）
sys.path.insert(0, str(Path(__file__).parent / "packages"))

from schemagen.cli import schemagen_main  # noqa: E402

if __name__ == "__main__":
    schemagen_main()
