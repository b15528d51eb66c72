#!/usr/bin/env python3
"""
Logseq Markdown - Page to Markdown Exporter

Main entry point. Exports the current Logseq page, a named page or the
results of a query as clean, portable Markdown.
"""

from logseq_markdown.cli import main


if __name__ == "__main__":
    main()
