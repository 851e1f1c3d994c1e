"""Render a stored policy version to PDF for dispute resolution."""
from __future__ import annotations

from lendit.models.policy_document import PolicyDocument
from lendit.services.policy import format_policy_version


def _escape_for_reportlab(s: str) -> str:
    """Escape &, <, > for reportlab Paragraph (XML-like markup)."""
    return s.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def policy_to_pdf(doc: PolicyDocument) -> bytes:
    """PDF of exactly the stored content of one version, with version and hash in the header."""
    from io import BytesIO
    from reportlab.lib.pagesizes import A4
    from reportlab.lib.styles import getSampleStyleSheet
    from reportlab.lib.enums import TA_JUSTIFY
    from reportlab.lib.units import inch
    from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer

    buf = BytesIO()
    pdf = SimpleDocTemplate(
        buf,
        pagesize=A4,
        leftMargin=0.75 * inch,
        rightMargin=0.75 * inch,
        topMargin=0.75 * inch,
        bottomMargin=0.75 * inch,
        title=f"{doc.title} ({format_policy_version(doc.version)})",
    )
    styles = getSampleStyleSheet()
    body_style = styles["Normal"].clone("JustifiedBody", alignment=TA_JUSTIFY, spaceAfter=6)
    meta_style = styles["Italic"]

    published = doc.published_at.strftime("%Y-%m-%d %H:%M UTC") if doc.published_at else "unpublished"
    story = [
        Paragraph(_escape_for_reportlab(doc.title.replace("\n", " ")), styles["Title"]),
        Paragraph(
            _escape_for_reportlab(f"{format_policy_version(doc.version, long=True)} - published {published}"),
            meta_style,
        ),
        Paragraph(_escape_for_reportlab(f"SHA-256: {doc.content_hash}"), meta_style),
        Spacer(1, 0.2 * inch),
    ]
    for line in doc.content.splitlines():
        line = line.strip()
        if line:
            story.append(Paragraph(_escape_for_reportlab(line), body_style))
        else:
            story.append(Spacer(1, 0.12 * inch))

    pdf.build(story)
    return buf.getvalue()
