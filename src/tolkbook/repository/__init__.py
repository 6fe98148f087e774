"""
Repository

Generic data access: one BaseRepository subclass per table gives lookup,
CRUD, pagination and validation over that table's records.

Repositories answer "how do I get or store this data?". Business rules
live in domain repositories built on top of them (see tolkbook.booking).
"""

from tolkbook.repository.base import BaseRepository
from tolkbook.repository.pagination import Paginator

__all__ = ["BaseRepository", "Paginator"]
