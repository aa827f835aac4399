"""Seed the template store with the bundled email templates"""

from pathlib import Path
from typing import List
import logging

from jinja2 import Environment, meta

from notification_service.repositories.base import TemplateRepository
from notification_service.schemas.notification import NotificationType
from notification_service.schemas.template import Template

from .event_routes import EVENT_ROUTES

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent.parent / "templates" / "emails"

# provided by the pipeline for every event
_PIPELINE_VARIABLES = {"year", "locale"}


def declared_variables(source: str) -> List[str]:
    """Placeholder names used by a template source"""
    ast = Environment().parse(source)
    return sorted(meta.find_undeclared_variables(ast) - _PIPELINE_VARIABLES)


def default_templates(template_dir: Path = TEMPLATE_DIR) -> List[Template]:
    """One email template per routed event, read from ``template_dir``"""
    templates = []
    for event_type, route in EVENT_ROUTES.items():
        path = template_dir / route.template_name
        content = path.read_text(encoding="utf-8")
        templates.append(Template(
            name=route.template_name,
            type=NotificationType.EMAIL.value,
            subject=route.default_subject,
            content=content,
            variables=declared_variables(content),
            metadata={"eventType": event_type},
        ))
    return templates


async def seed_default_templates(templates: TemplateRepository) -> int:
    """Save every bundled template that has no active version yet"""
    created = 0
    for template in default_templates():
        template.validate()
        if await templates.find_by_name(template.name) is not None:
            continue
        await templates.save(template)
        created += 1
        logger.info(f"Seeded template {template.name}")
    return created
