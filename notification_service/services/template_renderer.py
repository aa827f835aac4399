"""
Template rendering with Jinja2

Templates are looked up by name in the template store; only active templates
are eligible. Email templates are HTML and autoescaped, SMS and push templates
are plain text.
"""

from typing import Any, Dict, NamedTuple, Optional, Tuple
import logging
import uuid

from jinja2 import StrictUndefined, TemplateError
from jinja2.sandbox import SandboxedEnvironment

from notification_service.core.exceptions import RenderError, TemplateNotFoundError
from notification_service.repositories.base import TemplateRepository
from notification_service.schemas.notification import NotificationType
from notification_service.schemas.template import Template

logger = logging.getLogger(__name__)


class RenderedTemplate(NamedTuple):
    template: Template
    subject: str
    content: str


class TemplateRenderer:
    """Resolves templates by name and renders subject and content"""

    def __init__(self, templates: TemplateRepository):
        self.templates = templates
        self._html_env = SandboxedEnvironment(autoescape=True, undefined=StrictUndefined)
        self._text_env = SandboxedEnvironment(autoescape=False, undefined=StrictUndefined)
        self._compiled: Dict[Tuple[uuid.UUID, int], tuple] = {}

    async def get_template(self, template_name: str, locale: Optional[str] = None) -> str:
        """Raw content of the active template named ``template_name``"""
        return (await self._resolve(template_name)).content

    async def render(
        self,
        template_name: str,
        data: Dict[str, Any],
        locale: Optional[str] = None
    ) -> RenderedTemplate:
        template = await self._resolve(template_name)

        context = dict(data)
        if locale is not None:
            context.setdefault("locale", locale)

        subject_template, content_template = self._compile(template)
        try:
            subject = subject_template.render(context).strip()
            content = content_template.render(context)
        except TemplateError as e:
            raise RenderError(f"failed to render template {template_name}: {e}") from e
        except Exception as e:
            # stored templates can still fail on plain Python errors, e.g. {{ email + 1 }}
            raise RenderError(f"failed to render template {template_name}: {e.__class__.__name__}: {e}") from e

        return RenderedTemplate(template=template, subject=subject, content=content)

    async def _resolve(self, template_name: str) -> Template:
        template = await self.templates.find_by_name(template_name)
        if template is None:
            raise TemplateNotFoundError(template_name)
        return template

    def _compile(self, template: Template) -> tuple:
        key = (template.id, template.version)
        compiled = self._compiled.get(key)
        if compiled is not None:
            return compiled

        env = self._html_env if template.type == NotificationType.EMAIL.value else self._text_env
        try:
            compiled = (
                # subjects are never HTML
                self._text_env.from_string(template.subject),
                env.from_string(template.content),
            )
        except TemplateError as e:
            raise RenderError(f"invalid template {template.name}: {e}") from e

        # older versions of this template are never rendered again
        for stale in [k for k in self._compiled if k[0] == template.id]:
            del self._compiled[stale]
        self._compiled[key] = compiled
        logger.debug(f"Compiled template {template.name} v{template.version}")
        return compiled
