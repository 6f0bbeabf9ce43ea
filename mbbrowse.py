#!/usr/bin/env python3
"""
Convenience shim to run mbbrowse from a source checkout.
Usage: python mbbrowse.py [--kind KIND] [--config PATH] [QUERY...]
"""

from mbbrowse.cli import main


if __name__ == "__main__":
    main()
