"""
ForumXP — Forum Activity Levels for Discord
===========================================
Tracks XP earned in a Discord forum (pinning posts, creating posts),
turns cumulative XP into levels through a configured threshold table, and
keeps a single level role per member in sync with the ledger — without
mistaking its own role grants for a moderator's manual override.

Package layout::

    forumxp/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Timing constants + shared formatting
    ├── importer.py        # python -m forumxp.importer (bulk CSV import)
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helper
    │   └── models.py      # users table
    ├── engine/
    │   ├── levels.py      # ThresholdTable: XP → level
    │   ├── roles.py       # RoleBinding: level ↔ role
    │   └── pending.py     # Pending self-assigned role grants
    ├── services/
    │   ├── ledger_service.py       # add / remove / set XP, set level
    │   ├── role_service.py         # RoleReconciler
    │   ├── maintenance_service.py  # close / lock aged forum posts
    │   ├── ping_service.py         # role-ping fan-out messages
    │   ├── import_service.py       # CSV parsing + import run
    │   ├── audit_service.py        # log channel mirror
    │   └── throttle.py             # per-channel send throttle
    └── bot/
        ├── core.py        # Bot subclass, cog loader
        └── cogs/
            ├── pins.py       # pin reaction XP
            ├── posts.py      # forum post XP + auto-reply
            ├── role_sync.py  # manual level role overrides
            ├── pings.py      # role-ping triggers
            ├── admin.py      # /check-xp, /set-xp
            └── tasks.py      # thread maintenance loop
"""

__version__ = "0.1.0"
