"""Application modules.

- auth: JWT identities, admin role and API key checks
- moderation: Warnings, account locks, authorization gate and appeals
"""
