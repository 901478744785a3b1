"""
Email templates for reservoir alert notifications.

Each template returns a (plain_text, html_body) tuple.
"""
from html import escape
from typing import Optional, Tuple

SEVERITY_COLORS = {
    "LOW": "#1a73e8",
    "MEDIUM": "#f9ab00",
    "HIGH": "#e8710a",
    "CRITICAL": "#d93025",
}


def get_base_template(content: str, title: str = "Reservoir Monitor") -> str:
    """Wrap content in the base HTML email layout."""
    return f"""
<!DOCTYPE html>
<html>
<head>
    <meta charset="UTF-8">
    <title>{escape(title)}</title>
    <style>
        body {{ font-family: Arial, Helvetica, sans-serif; color: #333; background: #f4f6f8; margin: 0; }}
        .container {{ max-width: 600px; margin: 0 auto; padding: 20px; }}
        .card {{ background: #ffffff; border-radius: 6px; overflow: hidden; }}
        .header {{ background: #0b6e99; color: #ffffff; padding: 20px; }}
        .header h1 {{ margin: 0; font-size: 20px; }}
        .content {{ padding: 20px; }}
        .alert-box {{ border-left: 4px solid; padding: 12px 16px; background: #fafafa; }}
        .footer {{ font-size: 12px; color: #888; padding: 12px 20px; }}
    </style>
</head>
<body>
    <div class="container">
        <div class="card">
            <div class="header"><h1>Reservoir Monitor</h1></div>
            <div class="content">{content}</div>
            <div class="footer">Automatic message from the reservoir monitoring system.</div>
        </div>
    </div>
</body>
</html>
"""


def get_alert_notification_template(
    site_name: str,
    alert_type: str,
    message: str,
    severity: str,
    alert_time: Optional[str] = None,
    escalated: bool = False,
) -> Tuple[str, str]:
    """
    Get the alert notification template.

    Args:
        severity: LOW, MEDIUM, HIGH or CRITICAL
        escalated: True when the alert went unread past its escalation delay

    Returns:
        Tuple of (plain_text, html_body)
    """
    label = severity.upper()
    heading = f"[{label}] Alert for {site_name}"
    if escalated:
        heading = f"[ESCALATED] {heading}"
    when = alert_time or "Just now"

    plain_text = f"""
{heading}

Site: {site_name}
Type: {alert_type}
Time: {when}

{message}

{"This alert has not been acknowledged within the escalation delay." if escalated else ""}
Please review this alert in the technician dashboard.
"""

    color = SEVERITY_COLORS.get(label, SEVERITY_COLORS["MEDIUM"])
    html_content = f"""
<h2>{escape(heading)}</h2>
<div class="alert-box" style="border-color: {color};">
    <p><strong>Site:</strong> {escape(site_name)}</p>
    <p><strong>Alert type:</strong> {escape(alert_type)}</p>
    <p><strong>Time:</strong> {escape(when)}</p>
    <p>{escape(message)}</p>
</div>
<p>Please review this alert in the technician dashboard.</p>
"""

    return plain_text, get_base_template(html_content, heading)


def get_digest_template(subject: str, body: str) -> Tuple[str, str]:
    """Template for hourly and daily digests. Body lines are rendered as a list."""
    items = "".join(
        f"<li>{escape(line.lstrip('- '))}</li>" for line in body.splitlines() if line.strip()
    )
    html_content = f"""
<h2>{escape(subject)}</h2>
<ul>{items}</ul>
"""
    return f"{subject}\n\n{body}\n", get_base_template(html_content, subject)
