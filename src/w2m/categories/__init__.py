"""Category detection and markdown persistence.

Layout (relative to the vault root):
    <vault>/
    └── categories/
        ├── code.md                    # One document per category, newest first
        └── ideas.md

The category registry lives next to the vault in ``categories.json``.
"""
