"""Digest rendering with Jinja2.

Templates live in the ``jobwatch.notifications.email_templates`` package
directory. Undefined variables raise instead of rendering empty.
"""

from typing import Dict

from jinja2 import Environment, PackageLoader, StrictUndefined, TemplateError

from jobwatch.logging import get_logger

from .digest import digest_context
from .models import AlertDigest, NotificationTemplateError

logger = get_logger(__name__, component="notifications")


class DigestRenderer:
    """Renders the subject, plain text and HTML bodies of a digest."""

    def __init__(
        self,
        template_dir: str = "email_templates",
        subject_template: str = "digest_subject.j2",
        html_template: str = "digest_body.html.j2",
        text_template: str = "digest_body.txt.j2",
    ):
        self.subject_template_name = subject_template
        self.html_template_name = html_template
        self.text_template_name = text_template

        self.env = Environment(
            loader=PackageLoader("jobwatch.notifications", template_dir),
            autoescape=True,
            undefined=StrictUndefined,
        )
        # Plain text and subject must not be HTML-escaped
        self.text_env = Environment(
            loader=PackageLoader("jobwatch.notifications", template_dir),
            autoescape=False,
            undefined=StrictUndefined,
        )

    def render(self, digest: AlertDigest) -> Dict[str, str]:
        """Render a digest.

        Returns:
            Dict with ``subject`` (single line), ``text_body`` and ``html_body``

        Raises:
            NotificationTemplateError: If a template is missing or fails to render
        """
        context = digest_context(digest)
        try:
            subject = self.text_env.get_template(self.subject_template_name).render(context)
            text_body = self.text_env.get_template(self.text_template_name).render(context)
            html_body = self.env.get_template(self.html_template_name).render(context)
        except TemplateError as e:
            error_msg = f"Template rendering failed: {e}"
            logger.error(error_msg, extra={"event": "notification.render.failed"})
            raise NotificationTemplateError(error_msg) from e

        return {
            "subject": " ".join(subject.split()),
            "text_body": text_body,
            "html_body": html_body,
        }
