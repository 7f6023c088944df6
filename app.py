#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Run theca from a source checkout: ``python app.py list``.

Installed copies get the same entrypoint as the ``theca`` console script.
"""
from __future__ import annotations

from theca.cli import main


if __name__ == "__main__":
    main()
