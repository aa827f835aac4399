# tests/test_template_renderer.py

import pytest

from notification_service.core.exceptions import NotFoundError, RenderError, TemplateNotFoundError
from notification_service.repositories.redis_store import RedisTemplateRepository
from notification_service.schemas.template import Template
from notification_service.services.template_renderer import TemplateRenderer
from notification_service.services.template_seeder import (
    declared_variables,
    default_templates,
    seed_default_templates,
)

from .conftest import fake_redis


@pytest.fixture
def templates() -> RedisTemplateRepository:
    return RedisTemplateRepository(fake_redis())


@pytest.fixture
def renderer(templates) -> TemplateRenderer:
    return TemplateRenderer(templates)


async def test_render_substitutes_subject_and_content(templates, renderer) -> None:
    template = Template(
        name="greeting.html",
        type="email",
        subject="Hello {{ first_name }}",
        content="<p>Hi {{ first_name }}, it is {{ year }}</p>",
    )
    await templates.save(template)

    rendered = await renderer.render("greeting.html", {"first_name": "Ann", "year": "2025"}, locale="fr")

    assert rendered.template.id == template.id
    assert rendered.subject == "Hello Ann"
    assert rendered.content == "<p>Hi Ann, it is 2025</p>"


async def test_email_content_is_escaped_but_text_is_not(templates, renderer) -> None:
    await templates.save(Template(name="mail.html", type="email", subject="s", content="{{ name }}"))
    await templates.save(Template(name="text.txt", type="sms", subject="s", content="{{ name }}"))

    html = await renderer.render("mail.html", {"name": "<b>Ann</b>"})
    text = await renderer.render("text.txt", {"name": "<b>Ann</b>"})

    assert html.content == "&lt;b&gt;Ann&lt;/b&gt;"
    assert text.content == "<b>Ann</b>"


async def test_missing_variable_is_a_render_error(templates, renderer) -> None:
    await templates.save(Template(name="strict.html", type="email", subject="s", content="{{ reset_link }}"))

    with pytest.raises(RenderError):
        await renderer.render("strict.html", {})


async def test_syntax_error_is_a_render_error(templates, renderer) -> None:
    await templates.save(Template(name="broken.html", type="email", subject="s", content="{% if %}"))

    with pytest.raises(RenderError):
        await renderer.render("broken.html", {})


async def test_python_error_while_rendering_is_a_render_error(templates, renderer) -> None:
    await templates.save(Template(name="math.html", type="email", subject="s", content="{{ email + 1 }}"))

    with pytest.raises(RenderError) as exc_info:
        await renderer.render("math.html", {"email": "a@example.com"})

    assert "TypeError" in exc_info.value.detail


async def test_unknown_or_inactive_template_is_not_found(templates, renderer) -> None:
    await templates.save(
        Template(name="old.html", type="email", subject="s", content="x", is_active=False)
    )

    for name in ("missing.html", "old.html"):
        with pytest.raises(TemplateNotFoundError) as exc_info:
            await renderer.render(name, {})
        assert isinstance(exc_info.value, NotFoundError)
        assert isinstance(exc_info.value, RenderError)


async def test_updated_template_is_recompiled(templates, renderer) -> None:
    template = Template(name="v.html", type="email", subject="s", content="first")
    await templates.save(template)
    assert (await renderer.render("v.html", {})).content == "first"

    template.content = "second"
    await templates.update(template)

    assert (await renderer.render("v.html", {})).content == "second"
    assert list(renderer._compiled) == [(template.id, template.version)]


async def test_get_template_returns_raw_content(templates, renderer) -> None:
    await templates.save(Template(name="raw.html", type="email", subject="s", content="{{ email }}"))

    assert await renderer.get_template("raw.html", locale="en") == "{{ email }}"


async def test_seeding_adds_each_default_template_once(templates) -> None:
    assert await seed_default_templates(templates) == 4
    assert await seed_default_templates(templates) == 0

    welcome = await templates.find_by_name("welcome.html")
    assert welcome.subject == "Welcome to Our Service"
    assert "first_name" in welcome.variables


def test_bundled_templates_declare_their_variables() -> None:
    by_name = {t.name: t for t in default_templates()}

    assert set(by_name) == {
        "welcome.html",
        "email_verified.html",
        "password_reset.html",
        "password_changed.html",
    }
    assert by_name["password_reset.html"].variables == ["email", "reset_link"]
    assert declared_variables("{{ a }} {{ year }} {{ locale }}") == ["a"]
