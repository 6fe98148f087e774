"""
Generic repository over one table.

Subclasses bind the repository to a table and declare which columns a
caller may write:

    class JobRepository(BaseRepository[Job]):
        table = "jobs"
        fillable = ("user_id", "due", "duration", "status")
        validation_rules = {"duration": "required|integer|min:1"}

Records are the dict rows psycopg returns. Nothing here validates
implicitly; callers run validate() before create()/update() when they
need it. No exception is caught or translated: NotFound and
ValidationFailed come from here, psycopg errors come straight from the
store.
"""

import logging
from typing import Any, ClassVar, Generic, Mapping, TypeVar

from psycopg import sql

from tolkbook import db
from tolkbook.config import config
from tolkbook.errors import NotFound
from tolkbook.repository.pagination import Paginator
from tolkbook.validation.rules import RuleSpec
from tolkbook.validation.validator import PresenceVerifier, Validator

RecordT = TypeVar("RecordT", bound=Mapping[str, Any])

logger = logging.getLogger(__name__)


class BaseRepository(Generic[RecordT]):
    table: ClassVar[str]
    fillable: ClassVar[tuple[str, ...]] = ()
    primary_key: ClassVar[str] = "id"
    order_by: ClassVar[str] = "id"
    # Refresh updated_at on every update
    timestamps: ClassVar[bool] = True
    per_page: ClassVar[int | None] = None
    validation_rules: ClassVar[dict[str, RuleSpec]] = {}
    attribute_names: ClassVar[dict[str, str]] = {}

    def __init__(self, presence_verifier: PresenceVerifier | None = None):
        self.presence_verifier = presence_verifier

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    def all(self) -> list[RecordT]:
        """Every record, ordered by `order_by`."""
        return self.find_by()

    def find(self, id) -> RecordT | None:
        """Get a record by identity, or None."""
        return db.fetch_one(
            sql.SQL("SELECT * FROM {} WHERE {} = %s").format(
                self._table(), sql.Identifier(self.primary_key)
            ),
            (id,),
        )

    def find_or_fail(self, id) -> RecordT:
        """Get a record by identity. Raises NotFound when it does not exist."""
        record = self.find(id)
        if record is None:
            raise NotFound(self.table, id)
        return record

    def find_by_slug(self, slug: str) -> RecordT | None:
        """Get the first record carrying this slug, or None."""
        return self.first_where(slug=slug)

    def find_by(self, **filters) -> list[RecordT]:
        """All records matching equality filters, ordered by `order_by`."""
        where, params = self._where(filters)
        return db.fetch_all(
            sql.SQL("SELECT * FROM {}{} ORDER BY {}").format(
                self._table(), where, sql.Identifier(self.order_by)
            ),
            params,
        )

    def first_where(self, **filters) -> RecordT | None:
        where, params = self._where(filters)
        return db.fetch_one(
            sql.SQL("SELECT * FROM {}{} ORDER BY {} LIMIT 1").format(
                self._table(), where, sql.Identifier(self.order_by)
            ),
            params,
        )

    def count(self, **filters) -> int:
        where, params = self._where(filters)
        return db.fetch_value(
            sql.SQL("SELECT COUNT(*) FROM {}{}").format(self._table(), where), params
        )

    def instance(self, attributes: Mapping[str, Any] | None = None) -> dict[str, Any]:
        """A new, unpersisted record holding the fillable attributes given."""
        return self._fillable(attributes or {})

    def paginate(self, per_page: int | None = None, page: int = 1, **filters) -> Paginator[RecordT]:
        """
        One page of records matching the filters.

        Args:
            per_page: Page size; defaults to the repository's per_page or config.per_page
            page: 1-based page number; values below 1 are treated as 1
            **filters: Equality filters, as for find_by()

        Returns:
            Paginator with this page's items and the total match count
        """
        per_page = per_page or self.per_page or config.per_page
        if per_page < 1:
            raise ValueError(f"per_page must be positive, got {per_page}")
        page = max(1, int(page or 1))

        where, params = self._where(filters)
        total = db.fetch_value(
            sql.SQL("SELECT COUNT(*) FROM {}{}").format(self._table(), where), params
        )
        items = db.fetch_all(
            sql.SQL("SELECT * FROM {}{} ORDER BY {} LIMIT %s OFFSET %s").format(
                self._table(), where, sql.Identifier(self.order_by)
            ),
            params + (per_page, (page - 1) * per_page),
        )
        return Paginator(items=items, total=total, per_page=per_page, current_page=page)

    # -------------------------------------------------------------------------
    # Mutation
    # -------------------------------------------------------------------------

    def create(self, data: Mapping[str, Any] | None = None) -> RecordT:
        """Insert a record from the fillable part of `data` and return it."""
        values = self._fillable(data or {})
        if values:
            query = sql.SQL("INSERT INTO {} ({}) VALUES ({}) RETURNING *").format(
                self._table(),
                sql.SQL(", ").join(sql.Identifier(c) for c in values),
                sql.SQL(", ").join(sql.Placeholder() for _ in values),
            )
        else:
            query = sql.SQL("INSERT INTO {} DEFAULT VALUES RETURNING *").format(self._table())

        record = db.fetch_one(query, tuple(values.values()))
        logger.debug("Created %s %s", self.table, record[self.primary_key])
        return record

    def update(self, id, data: Mapping[str, Any] | None = None) -> RecordT:
        """
        Update only the fillable fields present in `data`.

        Fields missing from `data` keep their values. Raises NotFound when the
        record does not exist.
        """
        record = self.find_or_fail(id)
        values = self._fillable(data or {})
        if not values:
            return record

        assignments = self._assignments(values)
        updated = db.fetch_one(
            sql.SQL("UPDATE {} SET {} WHERE {} = %s RETURNING *").format(
                self._table(), assignments, sql.Identifier(self.primary_key)
            ),
            tuple(values.values()) + (id,),
        )
        if updated is None:
            # Deleted between the lookup and the write
            raise NotFound(self.table, id)
        logger.debug("Updated %s %s: %s", self.table, id, sorted(values))
        return updated

    def update_where(self, data: Mapping[str, Any], **filters) -> int:
        """Update every record matching the filters. Returns the affected row count."""
        values = self._fillable(data)
        if not values:
            return 0
        where, params = self._where(filters)
        count = db.execute(
            sql.SQL("UPDATE {} SET {}{}").format(self._table(), self._assignments(values), where),
            tuple(values.values()) + params,
        )
        logger.debug("Updated %d %s row(s) where %s", count, self.table, filters)
        return count

    def delete(self, id) -> RecordT:
        """Delete a record and return its last snapshot. Raises NotFound when absent."""
        record = self.find_or_fail(id)
        db.execute(
            sql.SQL("DELETE FROM {} WHERE {} = %s").format(
                self._table(), sql.Identifier(self.primary_key)
            ),
            (id,),
        )
        logger.debug("Deleted %s %s", self.table, id)
        return record

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    def validate(
        self,
        data: Mapping[str, Any],
        rules: Mapping[str, RuleSpec] | None = None,
        messages: Mapping[str, str] | None = None,
        attribute_names: Mapping[str, str] | None = None,
    ) -> bool:
        """
        Check `data` against a rule set without touching the store.

        Args:
            data: Attribute mapping to check
            rules: Rule set; defaults to the repository's validation_rules
            messages: Custom message templates keyed by "field.rule" or "rule"
            attribute_names: Display names, merged over the repository's own

        Returns:
            True when every rule passes

        Raises:
            ValidationFailed: carrying the error list of every violated field
        """
        if rules is None:
            rules = self.validation_rules

        validator = Validator(
            data, rules, messages=messages, presence_verifier=self.presence_verifier
        )
        names = {**self.attribute_names, **(attribute_names or {})}
        if names:
            validator.set_attribute_names(names)
        return validator.validate()

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _table(self) -> sql.Identifier:
        return sql.Identifier(self.table)

    def _fillable(self, data: Mapping[str, Any]) -> dict[str, Any]:
        return {column: data[column] for column in self.fillable if column in data}

    def _assignments(self, values: Mapping[str, Any]) -> sql.Composable:
        parts = [sql.SQL("{} = %s").format(sql.Identifier(c)) for c in values]
        if self.timestamps:
            parts.append(sql.SQL("{} = now()").format(sql.Identifier("updated_at")))
        return sql.SQL(", ").join(parts)

    @staticmethod
    def _where(filters: Mapping[str, Any]) -> tuple[sql.Composable, tuple]:
        """Build ' WHERE a = %s AND b = ANY(%s) AND c IS NULL' from equality filters."""
        if not filters:
            return sql.SQL(""), ()

        clauses = []
        params = []
        for column, value in filters.items():
            if value is None:
                clauses.append(sql.SQL("{} IS NULL").format(sql.Identifier(column)))
            elif isinstance(value, (list, tuple, set, frozenset)):
                if not value:
                    # Nothing can match an empty list
                    clauses.append(sql.SQL("FALSE"))
                    continue
                clauses.append(sql.SQL("{} = ANY(%s)").format(sql.Identifier(column)))
                params.append(list(value))
            else:
                clauses.append(sql.SQL("{} = %s").format(sql.Identifier(column)))
                params.append(value)
        return sql.SQL(" WHERE ") + sql.SQL(" AND ").join(clauses), tuple(params)
