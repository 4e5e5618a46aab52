# Ls-Python - Python reimplementation of the GNU ls listing engine
# Copyright (C) 2025 Istvan Sarandi
# SPDX-License-Identifier: GPL-3.0-or-later

from ls_python.cli import main

main()
