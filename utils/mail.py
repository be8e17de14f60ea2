"""
Email utility functions
"""
from flask_mail import Mail, Message
from flask import current_app

mail = Mail()


def mail_enabled():
    """True when Flask-Mail is bound and a server is configured."""
    if not mail.app and not current_app.extensions.get('mail'):
        return False
    return bool(current_app.config.get('MAIL_SERVER'))


def send_email(subject, recipients, body, html=None):
    """
    Send an email

    Args:
        subject: Email subject
        recipients: List of recipient email addresses
        body: Plain text body
        html: HTML body (optional)
    """
    msg = Message(
        subject=subject,
        recipients=recipients,
        body=body,
        html=html
    )
    mail.send(msg)


def _send_quietly(subject, recipients, body, html=None):
    """Send and log on failure. Subscription emails are non-critical."""
    if not recipients or not mail_enabled():
        return False
    try:
        send_email(subject, recipients, body, html)
        return True
    except Exception as e:
        current_app.logger.error(f"Error sending email '{subject}' to {recipients}: {str(e)}", exc_info=True)
        return False


def get_admin_emails():
    """Configured notification addresses, else emails of active Admin users"""
    configured = current_app.config.get('ADMIN_NOTIFICATION_EMAILS') or []
    if configured:
        return list(configured)
    try:
        from models.user import User
        from models.role import Role
        admins = (User.query.join(Role, User.role_id == Role.id)
                  .filter(Role.name == current_app.config['ADMIN_ROLE'], User.is_active.is_(True))
                  .all())
        return [admin.email for admin in admins]
    except Exception as e:
        current_app.logger.warning(f"Could not load admin emails: {str(e)}")
        return []


def _format_date(value):
    return value.strftime('%Y-%m-%d') if value else 'N/A'


def _format_amount(payment):
    if payment is None or payment.amount is None:
        return 'N/A'
    return f"{float(payment.amount):,.0f} VND"


def send_new_subscription_notification(subscription, user, package, payment=None):
    """Notify admins of new subscription request"""
    subject = f"New Subscription Request - {user.fullname}"
    body = f"""
A new subscription has been requested:

User: {user.fullname} ({user.email})
Package: {package.name}
Amount: {_format_amount(payment)}
Payment Method: {payment.method if payment else 'N/A'}
Status: {subscription.status}
Requested: {subscription.created_at.strftime('%Y-%m-%d %H:%M:%S') if subscription.created_at else 'N/A'}

Review the request in the admin panel.
"""
    html = _table_html("New Subscription Request", "A new subscription has been requested:", [
        ("User", f"{user.fullname} ({user.email})"),
        ("Package", package.name),
        ("Amount", _format_amount(payment)),
        ("Payment Method", payment.method if payment else 'N/A'),
        ("Status", subscription.status),
    ])
    return _send_quietly(subject, get_admin_emails(), body, html)


def send_subscription_approved_email(user, subscription, package):
    """Tell the user their premium subscription is active"""
    subject = f"Your {package.name} subscription is active"
    body = f"""
Hello {user.fullname},

Your subscription to {package.name} has been approved.

Start Date: {_format_date(subscription.start_date)}
End Date: {_format_date(subscription.end_date)}

Enjoy your premium benefits!
"""
    html = _table_html("Subscription Approved", f"Hello {user.fullname}, your subscription has been approved.", [
        ("Package", package.name),
        ("Start Date", _format_date(subscription.start_date)),
        ("End Date", _format_date(subscription.end_date)),
    ])
    return _send_quietly(subject, [user.email], body, html)


def send_subscription_rejected_email(user, subscription, package, reason):
    """Tell the user their request was rejected and why"""
    subject = f"Your {package.name} subscription request was rejected"
    body = f"""
Hello {user.fullname},

Unfortunately your subscription request for {package.name} was rejected.

Reason: {reason}

If you have already paid, our team will contact you about a refund.
"""
    html = _table_html("Subscription Rejected", f"Hello {user.fullname}, your subscription request was rejected.", [
        ("Package", package.name),
        ("Reason", reason),
    ])
    return _send_quietly(subject, [user.email], body, html)


def send_subscription_expired_email(user, subscription, package=None):
    """Tell the user their subscription has ended"""
    package_name = package.name if package else 'premium'
    subject = f"Your {package_name} subscription has expired"
    body = f"""
Hello {user.fullname},

Your {package_name} subscription ended on {_format_date(subscription.end_date)}.
Your account has been moved back to the standard plan.

You can subscribe again at any time.
"""
    html = _table_html("Subscription Expired", f"Hello {user.fullname}, your subscription has expired.", [
        ("Package", package_name),
        ("Ended", _format_date(subscription.end_date)),
    ])
    return _send_quietly(subject, [user.email], body, html)


def _table_html(title, intro, rows) -> str:
    """HTML template shared by the subscription emails"""
    cells = "".join(
        f'<tr><td style="padding: 8px; border-bottom: 1px solid #eee;"><strong>{label}:</strong></td>'
        f'<td style="padding: 8px; border-bottom: 1px solid #eee;">{value}</td></tr>'
        for label, value in rows
    )
    return f"""
    <!DOCTYPE html>
    <html>
    <head><meta charset="utf-8"><title>{title}</title></head>
    <body style="font-family: system-ui, sans-serif; max-width: 600px; margin: 0 auto; padding: 24px;">
        <h2 style="color: #1a1a2e;">{title}</h2>
        <p>{intro}</p>
        <table style="width: 100%; border-collapse: collapse; margin: 20px 0;">{cells}</table>
    </body>
    </html>
    """
