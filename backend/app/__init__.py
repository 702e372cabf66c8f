"""Smart Classroom Moderation Backend.

Tracks warnings against students, escalates them into chatbot
restrictions and account locks, and lets students appeal.

Modules:
    - core: Configuration, database, Redis, logging, metrics
    - modules.auth: JWT identities and admin API key
    - modules.moderation: Warning ledger, lock engine, authorization gate, appeals
"""

__version__ = "0.1.0"
