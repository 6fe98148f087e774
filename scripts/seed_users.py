"""Seed initial staff and demo accounts into the database."""
from tolkbook.booking import UserRepository

INITIAL_USERS = [
    {"name": "Support Admin", "email": "admin@tolkbook.local", "user_type": "superadmin", "slug": "support-admin"},
    {"name": "Demo Customer", "email": "customer@tolkbook.local", "user_type": "customer", "slug": "demo-customer"},
    {"name": "Demo Translator", "email": "translator@tolkbook.local", "user_type": "translator", "slug": "demo-translator", "phone": "+46700000000"},
]


def main():
    users_repo = UserRepository()

    for user in INITIAL_USERS:
        existing = users_repo.find_by_slug(user["slug"])
        if existing:
            print(f"Skipping {user['slug']} - already exists")
            continue

        users_repo.validate(user)
        result = users_repo.create(user)
        print(f"Created: {result['email']} (id={result['id']})")


if __name__ == "__main__":
    main()
