"""
HTML rendering of the class-action notification.

Rendering is a pure function of the SubmissionRecord. Absent or empty fields
render as "N/A", flags render as "Yes"/"No", and every value is HTML-escaped.
"""

from typing import Any

from jinja2 import Environment, StrictUndefined

from .models import SubmissionRecord


NOT_AVAILABLE = "N/A"

NOTIFICATION_TEMPLATE = """\
<html>
<body style="font-family: Arial, sans-serif; color: #2c3e50;">
  <h2 style="color: #3498db;">Class-Action Lawsuit Notification</h2>
  <p><strong>Dear {{ record.first_name | or_default("User") }},</strong></p>
  <p>Your request for the class-action lawsuit has been received.</p>

  <h3 style="color: #34495e;">Submission Details</h3>
  <table border="1" cellpadding="5" cellspacing="0" style="border-collapse: collapse; width: 100%;">
    <tr style="background-color: #ecf0f1;">
      <th align="left">Field</th>
      <th align="left">Value</th>
    </tr>
    <tr><td><strong>First Name</strong></td><td>{{ record.first_name | or_default }}</td></tr>
    <tr><td><strong>Last Name</strong></td><td>{{ record.last_name | or_default }}</td></tr>
    <tr><td><strong>Email</strong></td><td>{{ record.email | or_default }}</td></tr>
    <tr><td><strong>Phone</strong></td><td>{{ record.phone | or_default }}</td></tr>
    <tr><td><strong>Travel Date</strong></td><td>{{ record.travel_date | or_default }}</td></tr>
    <tr><td><strong>Booking Reference</strong></td><td>{{ record.booking_reference | or_default }}</td></tr>
    <tr><td><strong>Directly Affected</strong></td><td>{{ record.is_directly_affected | yes_no }}</td></tr>
{%- if record.is_directly_affected %}
    <tr><td><strong>Incident Type</strong></td><td>{{ record.incident_type | or_default }}</td></tr>
    <tr><td><strong>Incident Description</strong></td><td>{{ record.incident_description | or_default }}</td></tr>
    <tr><td><strong>Has Evidence</strong></td><td>{{ record.has_evidence | yes_no }}</td></tr>
{%- endif %}
    <tr><td><strong>Agreed to Terms</strong></td><td>{{ record.agree_to_terms | yes_no }}</td></tr>
  </table>

  <p>We will review your submission and contact you if any additional information is required.</p>
  <p>Thank you,<br/> Team of the project "People VS Swiss Air"<br/>
  <a href="https://www.swiss-lawsuit.info">www.swiss-lawsuit.info</a></p>
</body>
</html>
"""


def or_default(value: Any, default: str = NOT_AVAILABLE) -> Any:
    """Falsy values (None, "", 0, False) fall back to the default."""
    return value if value else default


def yes_no(value: Any) -> str:
    return "Yes" if value else "No"


def _build_environment() -> Environment:
    env = Environment(autoescape=True, undefined=StrictUndefined, keep_trailing_newline=True)
    env.filters["or_default"] = or_default
    env.filters["yes_no"] = yes_no
    return env


_ENV = _build_environment()
_TEMPLATE = _ENV.from_string(NOTIFICATION_TEMPLATE)


def render_notification(record: SubmissionRecord) -> str:
    """Render the HTML body for a submission."""
    return _TEMPLATE.render(record=record)
