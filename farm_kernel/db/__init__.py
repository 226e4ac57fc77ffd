"""Database layer: declarative base, engine/session management, integrity listeners."""
