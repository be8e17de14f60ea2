"""
Create an admin account or promote/reset an existing one.
Run: python create_admin.py admin@example.com
     or: python create_admin.py admin@example.com "YourPassword" "Full Name"
"""
import sys
import getpass


def create_admin(email, password, fullname='Administrator'):
    """Create or reset admin user"""
    from app import create_app, seed_reference_data
    from models import db
    from models.role import find_role, find_account_type
    from models.user import User

    app = create_app()

    with app.app_context():
        seed_reference_data()
        admin_role = find_role(app.config['ADMIN_ROLE'])
        if not admin_role:
            print(f"[ERROR] Role '{app.config['ADMIN_ROLE']}' not found. Check your database.")
            return False

        user = User.query.filter(User.email.ilike(email)).first()
        created = user is None
        if created:
            user = User(fullname=fullname, email=email.lower())
            user.account_type = find_account_type(app.config['DEFAULT_ACCOUNT_TYPE'])
            db.session.add(user)

        user.role = admin_role
        user.is_active = True
        user.set_password(password)

        try:
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            print("[ERROR]", e)
            return False

        print("[SUCCESS] Admin user created successfully!" if created else "[SUCCESS] Admin user updated successfully!")
        print("\n" + "=" * 50)
        print("ADMIN LOGIN:")
        print("=" * 50)
        print("POST /api/auth/login")
        print("Email:", user.email)
        print("=" * 50)
        return True


def main():
    if len(sys.argv) < 2:
        print(__doc__)
        return 1
    email = sys.argv[1].strip()
    if len(sys.argv) >= 3:
        password = sys.argv[2]
    else:
        password = getpass.getpass(f"Enter password for {email}: ")
        confirm = getpass.getpass("Confirm password: ")
        if password != confirm:
            print("Passwords do not match. Aborted.")
            return 1
    if len(password) < 6:
        print("Password must be at least 6 characters. Aborted.")
        return 1
    fullname = sys.argv[3] if len(sys.argv) >= 4 else 'Administrator'
    return 0 if create_admin(email, password, fullname) else 1


if __name__ == '__main__':
    sys.exit(main())
