# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Authentication core.

This package provides:
- Password hashing/verification (argon2)
- Signed, time-limited session tokens (JWT HS256, python-jose)
- Session cookie handling
- The SQLite credential store
"""
