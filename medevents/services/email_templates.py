"""
Email templates for pipeline notifications
"""

from jinja2 import DictLoader, Environment, select_autoescape

_TEMPLATES = {
    "base.html": """<!DOCTYPE html>
<html>
<body style="font-family: Arial, sans-serif; color: #333; max-width: 600px; margin: 0 auto;">
  <div style="background: #4f46e5; color: #fff; padding: 16px 24px;">
    <h2 style="margin: 0;">{{ from_name }}</h2>
  </div>
  <div style="padding: 24px;">
    {% block content %}{% endblock %}
  </div>
</body>
</html>""",
    "certificate_issued.html": """{% extends "base.html" %}
{% block content %}
<p>Hi {{ user_name }},</p>
<p>Your certificate for <strong>{{ event_title }}</strong> is ready.</p>
<p>Certificate ID: <code>{{ certificate_id }}</code></p>
{% endblock %}""",
    "certificate_failed.html": """{% extends "base.html" %}
{% block content %}
<p>Automatic certificate issuance failed.</p>
<ul>
  <li>Event: {{ event_id }}</li>
  <li>User: {{ user_id }}</li>
  <li>Booking: {{ booking_id }}</li>
  <li>Template: {{ template_id }}</li>
  <li>Workflow: {{ workflow }}</li>
</ul>
<p>Error: {{ error }}</p>
{% endblock %}""",
    "feedback_invite.html": """{% extends "base.html" %}
{% block content %}
<p>Hi {{ user_name }},</p>
<p>Thanks for attending <strong>{{ event_title }}</strong>. We'd love to hear what you thought.</p>
<p><a href="{{ feedback_url }}">Share your feedback</a></p>
{% endblock %}""",
}

SUBJECTS = {
    "certificate_issued": "Your certificate for {event_title}",
    "certificate_failed": "Certificate issuance failed for event {event_id}",
    "feedback_invite": "How was {event_title}?",
}

env = Environment(loader=DictLoader(_TEMPLATES), autoescape=select_autoescape(["html"]))


def render(kind: str, **context) -> str:
    return env.get_template(f"{kind}.html").render(**context)
