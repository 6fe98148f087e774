"""
Tests for BaseRepository against the test database.

Run with: pytest src/tolkbook/repository/base_test.py -v
"""
import psycopg
import pytest

from tolkbook import db
from tolkbook.booking import DistanceRepository, UserRepository
from tolkbook.conftest import make_job, make_user
from tolkbook.errors import NotFound, ValidationFailed


@pytest.fixture
def users(db_connection):
    return UserRepository()


def seed_customers(count: int) -> list[dict]:
    return [make_user("customer", f"Customer {i}") for i in range(1, count + 1)]


class TestLookup:
    """Tests for find, find_or_fail, find_by_slug and find_by"""

    def test_find_returns_created_record(self, users, sample_customer):
        found = users.find(sample_customer["id"])

        assert found["email"] == "carla.customer@example.com"
        assert found["user_type"] == "customer"

    def test_find_missing_returns_none(self, users):
        assert users.find(999) is None

    def test_find_or_fail_missing(self, users):
        with pytest.raises(NotFound) as excinfo:
            users.find_or_fail(999)

        assert excinfo.value.table == "users"
        assert excinfo.value.identity == 999

    def test_find_by_slug(self, users, sample_customer):
        assert users.find_by_slug("carla-customer")["id"] == sample_customer["id"]
        assert users.find_by_slug("nobody") is None

    def test_find_by_filters(self, users, sample_customer, sample_translator, sample_admin):
        staff = users.find_by(user_type=["admin", "translator"])

        assert [u["id"] for u in staff] == [sample_translator["id"], sample_admin["id"]]
        assert [u["id"] for u in users.find_by(phone=None)] == [
            sample_customer["id"],
            sample_admin["id"],
        ]

    def test_all_ordered_by_id(self, users):
        created = seed_customers(3)

        assert [u["id"] for u in users.all()] == [u["id"] for u in created]

    def test_count(self, users):
        seed_customers(4)

        assert users.count() == 4
        assert users.count(user_type="translator") == 0


class TestInstance:
    """Tests for instance()"""

    def test_keeps_only_fillable_attributes(self, users):
        record = users.instance({"name": "Nina", "email": "nina@example.com", "id": 7, "bogus": 1})

        assert record == {"name": "Nina", "email": "nina@example.com"}

    def test_does_not_persist(self, users):
        users.instance({"name": "Nina", "email": "nina@example.com"})

        assert users.count() == 0

    def test_empty(self, users):
        assert users.instance() == {}


class TestCreate:
    """Tests for create()"""

    def test_ignores_unknown_fields(self, users):
        created = users.create(
            {"name": "Nina", "email": "nina@example.com", "user_type": "translator", "bogus": "x"}
        )

        assert created["id"] is not None
        assert "bogus" not in created
        assert users.find(created["id"])["name"] == "Nina"

    def test_store_failure_propagates(self, users, sample_customer):
        with pytest.raises(psycopg.errors.UniqueViolation):
            users.create({"name": "Again", "email": sample_customer["email"]})


class TestUpdate:
    """Tests for update() and update_where()"""

    def test_changes_only_given_fields(self, job_repo, sample_job):
        updated = job_repo.update(sample_job["id"], {"duration": 90, "status_bogus": "x"})

        assert updated["duration"] == 90
        assert updated["from_language"] == sample_job["from_language"]
        assert updated["due"] == sample_job["due"]
        assert updated["updated_at"] >= sample_job["updated_at"]

    def test_without_fillable_changes_returns_record(self, job_repo, sample_job):
        assert job_repo.update(sample_job["id"], {"bogus": 1})["id"] == sample_job["id"]

    def test_missing_record(self, job_repo):
        with pytest.raises(NotFound):
            job_repo.update(999, {"duration": 90})

    def test_update_where_counts_rows(self, job_repo, sample_customer):
        make_job(sample_customer)
        make_job(sample_customer)
        make_job(sample_customer, status="completed")

        count = job_repo.update_where({"town": "Lund"}, status="pending")

        assert count == 2
        assert job_repo.count(town="Lund") == 2

    def test_update_where_without_values(self, job_repo, sample_job):
        assert job_repo.update_where({"bogus": 1}, id=sample_job["id"]) == 0


class TestDelete:
    """Tests for delete()"""

    def test_returns_snapshot_and_removes(self, users, sample_customer):
        deleted = users.delete(sample_customer["id"])

        assert deleted["id"] == sample_customer["id"]
        assert users.find(sample_customer["id"]) is None

    def test_missing_record(self, users):
        with pytest.raises(NotFound):
            users.delete(999)


class TestPaginate:
    """Tests for paginate()"""

    def test_pages_cover_every_record(self, users):
        seed_customers(7)

        pages = [users.paginate(per_page=3, page=p) for p in (1, 2, 3)]

        assert [len(p.items) for p in pages] == [3, 3, 1]
        assert sum(len(p.items) for p in pages) == 7
        assert all(p.total == 7 and p.last_page == 3 for p in pages)

    def test_page_past_the_end_is_empty(self, users):
        seed_customers(2)

        page = users.paginate(per_page=3, page=4)

        assert page.items == []
        assert page.total == 2

    @pytest.mark.parametrize("page", [0, -1, None])
    def test_page_below_one_is_first(self, users, page):
        seed_customers(2)

        assert users.paginate(per_page=1, page=page).current_page == 1

    def test_default_page_size(self, users):
        seed_customers(16)

        page = users.paginate()

        assert page.per_page == 15
        assert len(page.items) == 15

    def test_filters(self, users, sample_translator):
        seed_customers(3)

        page = users.paginate(user_type="translator")

        assert [u["id"] for u in page.items] == [sample_translator["id"]]
        assert page.total == 1

    def test_invalid_page_size(self, users):
        with pytest.raises(ValueError):
            users.paginate(per_page=-2)


class TestValidate:
    """Tests for validate()"""

    def test_valid_data_does_not_write(self, users):
        data = {"name": "Nina", "email": "nina@example.com", "user_type": "translator"}

        assert users.validate(data) is True
        assert users.count() == 0

    def test_reports_every_field(self, users):
        with pytest.raises(ValidationFailed) as excinfo:
            users.validate({"email": "nope", "user_type": "robot"})

        assert excinfo.value.errors == {
            "name": ["The name field is required."],
            "email": ["The email must be a valid email address."],
            "user_type": ["The selected user type is invalid."],
        }

    def test_repository_display_names(self, job_repo):
        with pytest.raises(ValidationFailed) as excinfo:
            job_repo.validate({"immediate": "no", "duration": 30})

        assert excinfo.value.errors == {
            "from_language": ["The language field is required."],
            "due": ["The due date field is required when immediate is no."],
        }

    def test_call_display_names_win(self, job_repo):
        with pytest.raises(ValidationFailed) as excinfo:
            job_repo.validate(
                {"immediate": "yes", "duration": 30},
                attribute_names={"from_language": "source language"},
            )

        assert excinfo.value.errors == {
            "from_language": ["The source language field is required."]
        }

    def test_explicit_rules_and_messages(self, job_repo):
        with pytest.raises(ValidationFailed) as excinfo:
            job_repo.validate(
                {},
                rules={"job_id": "required"},
                messages={"job_id.required": "Which job?"},
            )

        assert excinfo.value.errors == {"job_id": ["Which job?"]}

    def test_exists_checks_the_store(self, job_repo, sample_customer):
        rules = {"user_id": "required|exists:users,id"}

        assert job_repo.validate({"user_id": sample_customer["id"]}, rules=rules)
        with pytest.raises(ValidationFailed):
            job_repo.validate({"user_id": 999}, rules=rules)


class TestTransaction:
    """Tests for writes grouped with db.transaction()"""

    def test_failure_rolls_back_every_write(self, job_repo, sample_distance, sample_job):
        distances = DistanceRepository()

        with pytest.raises(RuntimeError):
            with db.transaction():
                distances.update_where({"distance": "12"}, job_id=sample_job["id"])
                job_repo.update(sample_job["id"], {"admin_comments": "late"})
                raise RuntimeError("boom")

        assert distances.find(sample_distance["id"])["distance"] == "0"
        assert job_repo.find(sample_job["id"])["admin_comments"] is None

    def test_commits_together(self, job_repo, sample_distance, sample_job):
        distances = DistanceRepository()

        with db.transaction():
            distances.update_where({"distance": "12"}, job_id=sample_job["id"])
            job_repo.update(sample_job["id"], {"admin_comments": "late"})

        assert distances.find(sample_distance["id"])["distance"] == "12"
        assert job_repo.find(sample_job["id"])["admin_comments"] == "late"
