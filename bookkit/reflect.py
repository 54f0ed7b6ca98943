"""Generate Markdown documentation for command-line options.

Works as a preprocessor step that replaces ``<name>(autogenerated)</name>``
in chapters with a description of an argument parser's options.
"""

from __future__ import annotations

import argparse
import json
import re
import textwrap
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import jinja2

TEMPLATE = r"""
<div class="table-wrapper">
<table>

<thead>
<tr>
<td>Option</td>
<td>Summary</td>
</tr>
</thead>

<tbody>

{% for option in options %}

<tr>
<td style="text-align: left;">

[`{{ option.key }}`](#{{ option.key }})

</td>
<td>

{{ option.help }}

</td>
</tr>

{% endfor %}

</tbody>

</table>
</div>

{% for option in options -%}

## `{{ option.key }}`

{{ option.description }}

{% if option.choices %}
<div class="table-wrapper">
<table>

<thead>
<tr>
<td>Choice</td>
<td>Description</td>
</tr>
</thead>

<tbody>

{% for choice, description in option.choices %}
<tr>

<td style="text-align: left;">
<code>{{ choice }}</code>
</td>

<td>

{{ description }}

</td>

</tr>
{% endfor %}

</tbody>

</table>
</div>
{% endif %}

<div class="table-wrapper">
<table>
<tbody>

{%- if option.default -%}

<tr>
<th style="text-align: left;">Default</th>
<td>

`{{ option.default }}`

</td>
</tr>

{%- endif -%}

{%- if option.type_id -%}

<tr>
<th style="text-align: left;">Type</th>
<td>

[`{{ option.type_id[0] }}`][{{ option.type_id[1] }}]

</td>
</tr>

{%- endif -%}

</tbody>
</table>
</div>

{% endfor -%}
"""

_TEMPLATE = jinja2.Environment().from_string(TEMPLATE)

_SKIPPED_ACTIONS = (argparse._HelpAction, argparse._VersionAction)


@dataclass
class OptionItem:
    """One documented option."""

    key: str
    help: str
    description: str
    type_id: tuple[str, str] | None
    default: str | None
    choices: list[tuple[str, str]] = field(default_factory=list)


def option_tag(name: str) -> str:
    """The placeholder replaced by generated documentation."""
    return f"<{name}>(autogenerated)</{name}>"


def _quoted(value: Any) -> str:
    return json.dumps(str(value), ensure_ascii=False)


def _help_text(action: argparse.Action) -> tuple[str, str]:
    text = textwrap.dedent(action.help or "").strip()
    paragraphs = [p.strip() for p in re.split(r"\n\s*\n", text) if p.strip()]
    summary = paragraphs[0] if paragraphs else ""
    description = "\n\n".join(paragraphs) if len(paragraphs) > 1 else ""
    return summary, description


def _is_flag(action: argparse.Action) -> bool:
    return isinstance(action, (argparse._StoreTrueAction, argparse._StoreFalseAction))


def _type_id(action: argparse.Action) -> tuple[str, str] | None:
    if not __debug__:
        return None
    if _is_flag(action):
        name = "bool"
    else:
        name = getattr(action.type, "__name__", None) or "str"
    if isinstance(action, argparse._AppendAction):
        name = f"list[{name}]"
    return name, name


def _default(action: argparse.Action) -> str | None:
    default = action.default
    if isinstance(default, (list, tuple)):
        default = default[0] if default else None
    if not _is_flag(action) and default is not None and default is not argparse.SUPPRESS:
        return _quoted(default)
    if isinstance(action, argparse._StoreTrueAction):
        return "false"
    if isinstance(action, argparse._StoreFalseAction):
        return "true"
    if isinstance(action, argparse._AppendAction):
        return "[]"
    if not action.required:
        return "None"
    return None


def _choices(action: argparse.Action) -> list[tuple[str, str]]:
    if not isinstance(action.choices, Mapping):
        return []
    return [(_quoted(name), str(help)) for name, help in action.choices.items() if help]


def collect_options(parser: argparse.ArgumentParser) -> list[OptionItem]:
    """Describe the visible options of ``parser``, sorted by long name.

    Choices are documented when given as a mapping of value to description.
    """
    items = []
    for action in parser._actions:
        if isinstance(action, _SKIPPED_ACTIONS) or not action.option_strings:
            continue
        if action.help == argparse.SUPPRESS:
            continue
        key = next((s[2:] for s in action.option_strings if s.startswith("--")), None)
        if key is None:
            raise ValueError(f"option {action.dest!r} has no long name")
        summary, description = _help_text(action)
        items.append(
            OptionItem(
                key=key,
                help=summary,
                description=description,
                type_id=_type_id(action),
                default=_default(action),
                choices=_choices(action),
            )
        )
    items.sort(key=lambda item: item.key)
    return items


def describe_options(parser: argparse.ArgumentParser) -> str:
    """Render Markdown documentation for the options of ``parser``."""
    return _TEMPLATE.render(options=collect_options(parser))


def _chapters(items: Any):
    for item in items or []:
        if isinstance(item, Mapping) and isinstance(item.get("Chapter"), Mapping):
            chapter = item["Chapter"]
            yield chapter
            yield from _chapters(chapter.get("sub_items"))


def replace_in_book(book: Mapping[str, Any], tag: str, content: str) -> int:
    """Replace ``tag`` with ``content`` in every chapter; return how many changed."""
    changed = 0
    for chapter in _chapters(book.get("sections")):
        text = chapter.get("content", "")
        replaced = text.replace(tag, content)
        if replaced != text:
            chapter["content"] = replaced
            changed += 1
    return changed