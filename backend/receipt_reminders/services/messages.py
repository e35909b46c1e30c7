"""Rendering of reminder messages from notification content."""
from datetime import date
from html import escape


def _format_due_date(value) -> str:
    if not value:
        return "an upcoming date"
    try:
        return date.fromisoformat(str(value)).strftime("%b %d, %Y")
    except ValueError:
        return str(value)


def _format_amount(value) -> str:
    try:
        return f"{float(value):.2f}"
    except (TypeError, ValueError):
        return "0.00"


def _days_left(content: dict, today: date | None) -> int | None:
    if today is not None:
        try:
            return (date.fromisoformat(str(content.get("dueDate"))) - today).days
        except ValueError:
            pass
    if content.get("catchUp"):
        return None
    return content.get("daysBefore")


def _timing_phrase(content: dict, today: date | None = None) -> str:
    """How far off the due date is, counted from ``today`` when it is known."""
    days = _days_left(content, today)
    if days is None or days < 0:
        return "soon"
    if days == 0:
        return "today"
    if days == 1:
        return "tomorrow"
    return f"in {days} days"


def render_email(content: dict, dashboard_url: str = "", today: date | None = None) -> tuple[str, str]:
    """Subject and HTML body for a receipt reminder email."""
    vendor = escape(str(content.get("vendor") or "your vendor"))
    category = escape(str(content.get("category") or "Uncategorized"))
    amount = _format_amount(content.get("amount"))
    due_date = _format_due_date(content.get("dueDate"))
    when = _timing_phrase(content, today)

    subject = f"Payment Reminder - {content.get('vendor') or 'Receipt'} due {when}"

    html = f"""
    <html>
    <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
        <h1 style="color: #1e40af;">Upcoming Receipt Due Date</h1>
        <p>Hi there,</p>
        <p>This is a reminder that a payment is due {when}.</p>
        <ul>
            <li><strong>Vendor:</strong> {vendor}</li>
            <li><strong>Category:</strong> {category}</li>
            <li><strong>Amount:</strong> ${amount}</li>
            <li><strong>Due Date:</strong> {due_date}</li>
        </ul>
    """
    if dashboard_url:
        html += f"""
        <p><a href="{escape(dashboard_url)}/dashboard" style="display: inline-block; background: #1e40af; color: white; padding: 12px 24px; text-decoration: none; border-radius: 6px;">View Receipt Details</a></p>
        """
    html += """
        <p>If you've already taken care of this receipt, you can safely ignore this reminder.</p>
        <p style="margin-top: 24px; padding-top: 16px; border-top: 1px solid #e5e7eb; color: #6b7280; font-size: 12px;">
            This is an automated reminder. Please do not reply to this email.
        </p>
    </body>
    </html>
    """
    return subject, html


def render_sms(content: dict) -> str:
    """Short text body for a receipt reminder SMS."""
    vendor = content.get("vendor") or "receipt"
    amount = _format_amount(content.get("amount"))
    due_date = _format_due_date(content.get("dueDate"))
    return f"Receipt Reminder: Your {vendor} payment (${amount}) is due on {due_date}. Please take action if needed."
