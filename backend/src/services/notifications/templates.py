"""
E-mail template engine built on Jinja2.

Each e-mail is a trio of files in ``email_templates/``: ``<name>_subject.txt``,
``<name>.html`` and ``<name>.txt``.
"""

from datetime import datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Dict, Optional, Union

from jinja2 import (
    Environment,
    FileSystemLoader,
    TemplateError,
    TemplateNotFound,
    select_autoescape,
)

from src.core.logging import get_logger

logger = get_logger(__name__)

TEMPLATE_DIR = Path(__file__).parent / "email_templates"


class TemplateEngineError(Exception):
    """Base exception for template engine errors."""

    def __init__(self, message: str, template_name: Optional[str] = None):
        super().__init__(message)
        self.template_name = template_name


class TemplateNotFoundError(TemplateEngineError):
    """Raised when a template cannot be found."""

    pass


class TemplateRenderError(TemplateEngineError):
    """Raised when template rendering fails."""

    pass


class TemplateEngine:
    """
    Renders e-mail subjects and bodies from Jinja2 templates.

    Args:
        template_dir: Directory containing template files
    """

    def __init__(self, template_dir: Optional[Union[str, Path]] = None):
        self.template_dir = Path(template_dir) if template_dir else TEMPLATE_DIR
        self.env = Environment(
            loader=FileSystemLoader(str(self.template_dir)),
            autoescape=select_autoescape(["html", "xml"]),
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.env.filters["currency"] = format_currency
        self.env.filters["date"] = format_date
        self.env.filters["status_label"] = format_status

    def render_email(self, template_name: str, context: Dict[str, Any]) -> Dict[str, str]:
        """
        Render an email template.

        Args:
            template_name: Template base name (without suffix or extension)
            context: Variables available to the template

        Returns:
            Dictionary with 'subject', 'html_body' and 'text_body'

        Raises:
            TemplateNotFoundError: If any of the three files is missing
            TemplateRenderError: If rendering fails
        """
        try:
            subject = self.env.get_template(f"{template_name}_subject.txt").render(**context)
            html_body = self.env.get_template(f"{template_name}.html").render(**context)
            text_body = self.env.get_template(f"{template_name}.txt").render(**context)
        except TemplateNotFound as e:
            logger.error("Email template not found", template_name=template_name, missing=str(e))
            raise TemplateNotFoundError(
                f"Email template not found: {template_name}",
                template_name=template_name,
            ) from e
        except (TemplateError, InvalidOperation) as e:
            logger.error(
                "Email template rendering failed",
                template_name=template_name,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise TemplateRenderError(
                f"Failed to render email template: {e}",
                template_name=template_name,
            ) from e

        return {
            "subject": " ".join(subject.split()),
            "html_body": html_body,
            "text_body": text_body,
        }


def format_currency(value: Union[int, float, Decimal, None]) -> str:
    return f"${Decimal(str(value or 0)):,.2f}"


def format_date(value: Union[datetime, str, None]) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return value
    return value.strftime("%d %B %Y")


def format_status(value: Any) -> str:
    raw = getattr(value, "value", value)
    return str(raw).replace("_", " ").title()


def get_template_engine(template_dir: Optional[Union[str, Path]] = None) -> TemplateEngine:
    return TemplateEngine(template_dir=template_dir)
