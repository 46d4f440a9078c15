"""Template tags for the checkout widget."""

from django import template
from django.utils.html import format_html

from django_regdesk.settings import get_config

register = template.Library()

_RENDERED_FLAG = "_regdesk_checkout_script_rendered"


@register.simple_tag(takes_context=True)
def checkout_script(context: template.Context) -> str:
    """Render the checkout widget ``<script>`` tag once per page.

    Later calls in the same template context render nothing, so partials can
    include the tag freely.

    Usage in templates::

        {% load checkout_tags %}
        {% checkout_script %}

    Returns:
        The script tag, or an empty string if already rendered.
    """
    root = context.dicts[0]
    if root.get(_RENDERED_FLAG):
        return ""
    root[_RENDERED_FLAG] = True
    return format_html(
        '<script src="{}" data-razorpay="true" async></script>',
        get_config().razorpay.checkout_script_url,
    )


@register.simple_tag
def checkout_key() -> str:
    """Return the public checkout key id.

    Usage in templates::

        {% load checkout_tags %}
        {% checkout_key as key_id %}
        <script>const options = {key: "{{ key_id }}"};</script>

    Returns:
        The key id, or empty string if not configured.
    """
    return get_config().razorpay.key_id
