"""Turn tracking for two-player games.

Storage lives in `turnbell.storage`; the turn workflow callers use is in `turnbell.turns`.
"""
