"""Local rendering of reminder emails.

Used when a message cannot go through the provider-hosted template, e.g.
for recipients handed to the fallback provider. Placeholders use the same
``{{variableName}}`` syntax as the hosted templates.
"""

import html
import re
from dataclasses import dataclass
from typing import Any

PLACEHOLDER = re.compile(r"\{\{\s*(\w+)\s*\}\}")

REMINDER_HTML_LAYOUT = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8" />
  <style>
    body { font-family: Arial, sans-serif; line-height: 1.6; color: #333; background-color: #f4f4f4; }
    .container { max-width: 600px; margin: 0 auto; background-color: #ffffff; }
    .header { background-color: #4299e1; color: white; padding: 20px; border-radius: 5px 5px 0 0; }
    .content { padding: 20px 30px; }
    .highlight { background-color: #f0f7ff; border-left: 4px solid #4299e1; padding: 15px; margin: 20px 0; }
    .footer { margin-top: 20px; padding: 0 30px 20px; font-size: 12px; color: #666; }
  </style>
</head>
<body>
  <div class="container">
    <div class="header">
      <h2 style="margin: 0;">Inspection Reminder</h2>
    </div>
    <div class="content">
      <p>Hello {{companyName}},</p>
      <p>This is a reminder of an upcoming inspection.</p>
      <div class="highlight">
        <p><strong>Date:</strong> {{inspectionDate}}</p>
        <p><strong>Asset:</strong> {{assetName}}</p>
        <p><strong>Location:</strong> {{location}}</p>
        <p><strong>Inspectors:</strong> {{inspectorNames}}</p>
      </div>
      <p>Please make sure the asset is accessible on the scheduled date.</p>
    </div>
    <div class="footer">
      <p>This is an automated reminder from OnSchedule.</p>
    </div>
  </div>
</body>
</html>
"""

REMINDER_TEXT_LAYOUT = """Inspection Reminder

Hello {{companyName}},

This is a reminder of an upcoming inspection.

Date: {{inspectionDate}}
Asset: {{assetName}}
Location: {{location}}
Inspectors: {{inspectorNames}}

This is an automated reminder from OnSchedule."""


@dataclass(frozen=True)
class RenderedEmail:
    subject: str
    text: str
    html: str


def compile_template(template: str, variables: dict[str, Any], escape: bool = False) -> str:
    """Substitute ``{{name}}`` placeholders. Unknown names become empty strings."""

    def replace(match: re.Match) -> str:
        value = variables.get(match.group(1))
        value = "" if value is None else str(value)
        return html.escape(value) if escape else value

    return PLACEHOLDER.sub(replace, template)


def text_to_html(text: str) -> str:
    """Wrap plain text in a minimal HTML body, preserving line breaks."""
    escaped = html.escape(text).replace("\n", "<br />\n")
    return f'<div style="font-family: Arial, sans-serif; color: #111;">{escaped}</div>'


def render_reminder_email(
    variables: dict[str, Any],
    subject: str | None = None,
    body_html: str | None = None,
) -> RenderedEmail:
    """Compile a template-mode reminder without the provider.

    Args:
        variables: Template variables (companyName, inspectionDate, ...)
        subject: Subject line, may contain placeholders
        body_html: Raw HTML of the stored template; the generic layout is
            used when absent

    Returns:
        Subject, plain-text and HTML renderings
    """
    subject_template = subject or "Inspection Reminder - {{companyName}}"
    return RenderedEmail(
        subject=compile_template(subject_template, variables),
        text=compile_template(REMINDER_TEXT_LAYOUT, variables),
        html=compile_template(body_html or REMINDER_HTML_LAYOUT, variables, escape=True),
    )
