import markdown as mdlib
from django import template
from django.utils.html import escape
from django.utils.safestring import mark_safe

register = template.Library()


@register.filter(name="add_classes")
def add_classes(field, css):
    """Render a form field with extra CSS classes on its widget.

    Usage: {{ form.title|add_classes:"input input-bordered w-full" }}
    """
    widget = field.field.widget
    merged = (widget.attrs.get("class", "") + " " + css).strip()
    return field.as_widget(attrs={**widget.attrs, "class": merged})


@register.filter(name="markdownify")
def markdownify(text):
    """Render survey descriptions and instructions as markdown.

    Raw HTML is escaped first, so only markdown syntax produces markup.
    """
    if not text:
        return ""
    html = mdlib.markdown(escape(text), extensions=["extra", "nl2br", "sane_lists"])
    return mark_safe(html)


@register.filter(name="answer_for")
def answer_for(data, question):
    """Previously submitted value for ``question`` when re-rendering a form."""
    if not data:
        return ""
    return data.get(f"q_{question.id}", "")


@register.filter(name="error_for")
def error_for(errors, question):
    if not errors:
        return ""
    return errors.get(question.id, "")


@register.filter(name="is_page_break")
def is_page_break(item):
    return hasattr(item, "before")
