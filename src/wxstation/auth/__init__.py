# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Authentication helpers.

This package provides:
- Challenge tokens and email syntax checks
- Server-side sessions behind a signed cookie (itsdangerous)
- The passwordless login / registration flows
"""
