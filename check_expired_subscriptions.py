"""
Expire overdue subscriptions and downgrade their users.
Meant for a daily cron job: python check_expired_subscriptions.py
(equivalent to: flask --app wsgi expire-subscriptions)
"""
import sys


def main():
    from app import create_app
    from services.expiry import sweep_expired_subscriptions
    from utils.notifications import notify_subscriptions_expired

    app = create_app()
    with app.app_context():
        result = sweep_expired_subscriptions()
        notify_subscriptions_expired(result)
        print(f"Checked: {result.checked}")
        print(f"Expired: {result.expired}")
        print(f"Failed:  {result.failed}")
        if result.failed_ids:
            print("Failed subscription ids:", ", ".join(str(i) for i in result.failed_ids))
    return 1 if result.failed else 0


if __name__ == '__main__':
    sys.exit(main())
