# src/prompts/templates.py - v1
"""Built-in prompt templates and the variant registry.

Each variant is an independent template. The registry is resolved once
when the composer is created; custom templates from settings take
precedence over the built-in text.
"""

from __future__ import annotations

from dataclasses import dataclass

PROMPT_VERSION = "1.0"

_RESPONSE_FORMAT = (
    '{"alt":"...","caption":"...","title":"...","keywords":["..."],"score":0.95}'
)

_MULTILINGUAL_WARNING = """{{#if is_multilingual}}---------------------------------------------------------------
MULTILINGUAL SITE
---------------------------------------------------------------
The context above may contain text in other languages. Every field you
return MUST be written in {{language_name}} only.
- Do not translate into any other language
- Do not copy context text that is in a different language
- Do not mix languages inside one field
---------------------------------------------------------------
{{/if}}"""

_TASK = """TASK: Generate SEO metadata in {{language_name}}:

1. ALT text (max {{alt_max_length}} characters, descriptive, never starting with 'image of')
   Focus: page relevance, accessibility, search keywords
   If a current ALT exists, improve it rather than replacing it entirely
2. Caption (1-2 sentences, contextual)
   Focus: the story the page tells
3. Title (3-6 words, factual, keyword-rich)
4. Keywords (3-6 terms)
   Focus: alignment with page categories and tags
{{#if is_multilingual}}Every field MUST be in {{language_name}}.
{{/if}}"""

MINIMAL_TEMPLATE = (
    "You are a {{ai_role}} analyzing images for websites.\n\n"
    "CONTEXT:\n"
    "{{#if site_context}}Site: {{site_context}}\n"
    "{{/if}}{{#if post_title}}Page: {{post_title}}\n"
    "{{/if}}{{#if categories}}Categories: {{categories}}\n"
    "{{/if}}{{#if tags}}Tags: {{tags}}\n"
    "{{/if}}\n"
    "IMAGE:\n"
    "{{#if filename_hint}}File: {{filename_hint}}\n"
    "{{/if}}{{#if orientation}}Format: {{orientation}}\n"
    "{{/if}}\n"
    "Write ALL content in {{language_name}}.\n\n"
    "Generate SEO metadata:\n"
    "1. ALT ({{alt_max_length}} chars max) - page-relevant, accessible\n"
    "2. Caption (1-2 sentences) - contextual\n"
    "3. Title (3-6 words) - search-focused\n"
    "4. Keywords (3-6 terms) - match page tags and categories\n\n"
    "Respond ONLY with JSON:\n" + _RESPONSE_FORMAT
)

STANDARD_TEMPLATE = """You are a {{ai_role}} analyzing images for websites.

WEBSITE CONTEXT:
{{#if site_context}}Site: {{site_context}}
{{/if}}{{#if post_title}}Page Title: {{post_title}}
{{/if}}{{#if post_excerpt}}Page Description: {{post_excerpt}}
{{/if}}{{#if categories}}Categories: {{categories}}
{{/if}}{{#if tags}}Tags: {{tags}}
{{/if}}
IMAGE INFORMATION:
{{#if filename_hint}}Filename: {{filename_hint}}
{{/if}}{{#if orientation}}Format: {{orientation}}
{{/if}}{{#if dimensions}}Dimensions: {{dimensions}}
{{/if}}{{#if current_alt}}Current ALT: "{{current_alt}}" (refine and improve this)
{{/if}}{{#if attachment_title}}Original Title: {{attachment_title}}
{{/if}}{{#if attachment_caption}}Author Caption: {{attachment_caption}}
{{/if}}{{#if attachment_description}}Author Description: {{attachment_description}}
{{/if}}{{#if exif_title}}EXIF Title: {{exif_title}}
{{/if}}{{#if exif_caption}}EXIF Caption: {{exif_caption}}
{{/if}}
OUTPUT LANGUAGE: {{language_name}}

""" + _MULTILINGUAL_WARNING + "\n" + _TASK + """
GUIDELINES:
- Page context matters more than technical image details
- Use the filename to infer purpose (hero, thumbnail, product)
- Be specific; avoid generic terms

Respond ONLY with valid JSON in exactly this format:
""" + _RESPONSE_FORMAT

ADVANCED_TEMPLATE = """You are a {{ai_role}} analyzing images for websites.

== PAGE CONTEXT ==
{{#if site_context}}Site: {{site_context}}
{{/if}}{{#if site_topic}}Topic: {{site_topic}}
{{/if}}{{#if post_title}}Page Title: {{post_title}}
{{/if}}{{#if post_excerpt}}Page Description: {{post_excerpt}}
{{/if}}{{#if categories}}Categories: {{categories}}
{{/if}}{{#if tags}}Tags: {{tags}}
{{/if}}{{#if post_type}}Content Type: {{post_type}}
{{/if}}
== IMAGE DETAILS ==
{{#if filename_hint}}Filename: {{filename_hint}}
{{/if}}{{#if orientation}}Format: {{orientation}}
{{/if}}{{#if dimensions}}Dimensions: {{dimensions}}
{{/if}}{{#if current_alt}}Current ALT: "{{current_alt}}" (refine and improve this)
{{/if}}{{#if attachment_title}}Original Title: {{attachment_title}}
{{/if}}{{#if attachment_caption}}Author Caption: {{attachment_caption}}
{{/if}}{{#if attachment_description}}Author Description: {{attachment_description}}
{{/if}}
{{#if exif_title}}Embedded title: {{exif_title}}
{{/if}}{{#if exif_caption}}Embedded caption: {{exif_caption}}
{{/if}}{{#if camera}}Camera: {{camera}}
{{/if}}{{#if photo_date}}Taken: {{photo_date}}
{{/if}}{{#if location}}Location: {{location}}
{{/if}}{{#if copyright}}Copyright: {{copyright}}
{{/if}}
== ANALYSIS STRATEGY ==
1. Context priority:
   a) page description and title
   b) categories and tags
   c) filename and author metadata
   d) current ALT text
   e) embedded camera data
2. Purpose hints:
   - 'hero-*', 'banner-*' filenames: main visual, wide format
   - 'team-*', 'staff-*' filenames: people, group shots
   - 'product-*' filenames: product photography
   - landscape: wide scene; portrait: person-focused; square: social-friendly
3. Self-assess your confidence as "score" between 0.0 and 1.0

== OUTPUT LANGUAGE: {{language_name}} ==

""" + _MULTILINGUAL_WARNING + "\n" + _TASK + """
Respond ONLY with valid JSON in exactly this format:
""" + _RESPONSE_FORMAT


@dataclass(frozen=True)
class PromptTemplate:
    """One prompt variant."""

    variant: str
    default_template: str
    description: str = ""

    def resolve(self, custom: str = "") -> str:
        """Custom template when configured, else the built-in one."""
        return custom if custom.strip() else self.default_template


TEMPLATE_REGISTRY: dict[str, PromptTemplate] = {
    "minimal": PromptTemplate(
        "minimal", MINIMAL_TEMPLATE, "Short prompt, lowest token cost"
    ),
    "standard": PromptTemplate(
        "standard", STANDARD_TEMPLATE, "Balanced context and guidance"
    ),
    "advanced": PromptTemplate(
        "advanced", ADVANCED_TEMPLATE, "Full context including embedded metadata"
    ),
}


def get_template(variant: str) -> PromptTemplate:
    """Look up a variant; unknown names raise KeyError listing the known ones."""
    try:
        return TEMPLATE_REGISTRY[variant]
    except KeyError:
        raise KeyError(
            f"Unknown prompt variant {variant!r}. "
            f"Available: {', '.join(sorted(TEMPLATE_REGISTRY))}"
        ) from None
