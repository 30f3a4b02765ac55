# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Stateless signed sessions.

This package provides:
- Password hashing/verification (argon2)
- Signed, expiring session tokens (itsdangerous)
- Session and redirect-continuation cookies
- AuthGate, the request-facing "who is this" facade
- User store and signup validation
"""
