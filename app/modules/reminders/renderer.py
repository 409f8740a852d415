"""Template rendering.

Resolves a NotificationTemplate and a variable mapping into the content shape
of one channel. ``{{name}}`` (optionally ``{{ name }}``) placeholders are
replaced in every text field of the content. Rendering is pure: the same
template, channel and variables always give equal content, which keeps
retries idempotent.
"""

import re
from typing import Any, Dict, Mapping

from infrastructure.logging import get_module_logger
from modules.reminders.errors import RenderError, RenderErrorKind
from modules.reminders.models import Channel, NotificationTemplate, TemplateContent

logger = get_module_logger()

PLACEHOLDER = re.compile(r"\{\{\s*(\w+)\s*\}\}")


def placeholders(text: str) -> list:
    """Variable names referenced by ``text`` in order of first appearance."""
    return list(dict.fromkeys(PLACEHOLDER.findall(text)))


class TemplateRenderer:
    def render(
        self,
        template: NotificationTemplate,
        channel: Channel,
        variables: Mapping[str, Any],
    ) -> TemplateContent:
        """Render ``template`` for ``channel``.

        Raises:
            RenderError: UNSUPPORTED_CHANNEL when the template has no content
                for the channel, MISSING_VARIABLE when a declared slot or a
                placeholder has no value.
        """
        content = template.channel_contents.get(channel)
        if content is None:
            logger.warning(
                "template_channel_unsupported",
                template_id=template.id,
                channel=channel.value,
            )
            raise RenderError(
                RenderErrorKind.UNSUPPORTED_CHANNEL, template.id, channel.value
            )

        fields: Dict[str, str] = {
            name: value
            for name, value in content.model_dump().items()
            if isinstance(value, str)
        }

        required = sorted(template.variable_slots)
        for text in fields.values():
            required.extend(n for n in placeholders(text) if n not in required)

        for slot in required:
            if variables.get(slot) is None:
                logger.warning(
                    "template_variable_missing",
                    template_id=template.id,
                    channel=channel.value,
                    slot=slot,
                    available_variables=sorted(variables),
                )
                raise RenderError(
                    RenderErrorKind.MISSING_VARIABLE,
                    template.id,
                    channel.value,
                    slot=slot,
                )

        rendered = {
            name: PLACEHOLDER.sub(lambda m: str(variables[m.group(1)]), text)
            for name, text in fields.items()
        }
        return content.model_copy(update=rendered)
