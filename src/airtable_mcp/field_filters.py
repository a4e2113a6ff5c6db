"""
Field Filtering

Control which fields a record listing returns. Attachment and long text
fields make responses large enough to time out MCP clients, so they can be
excluded by name pattern or by preset.
"""

import re

# Common attachment field patterns that tend to be large
ATTACHMENT_FIELD_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in [
        r"headshot",
        r"photo",
        r"image",
        r"picture",
        r"sample",
        r"video",
        r"attachment",
        r"files?",
        r"media",
        r"screenshot",
        r"living room",
        r"bathroom",
        r"home photos",
        r"current setup",
        r"dropbox",
        r"ai.*image",
        r"generated.*image",
    ]
]

# Long text field patterns that can be large
LONG_TEXT_FIELD_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in [
        r"feedback",
        r"notes?",
        r"description",
        r"bio",
        r"additional.*notes",
        r"project.*notes",
        r"comments",
        r"rich.*text",
        r"ai.*text",
        r"generated.*text",
        r"summary",
        r"content",
    ]
]

FIELD_PRESETS = {
    "minimal": ["Creator Name", "First Name", "Last Name", "Email"],
    "contact": [
        "Creator Name",
        "First Name",
        "Last Name",
        "Email",
        "Phone Number",
        "Instagram Handle",
        "TikTok Handle",
        "Instagram URL",
        "TikTok URL",
    ],
    "summary": [
        "Creator Name",
        "First Name",
        "Last Name",
        "Email",
        "Phone Number",
        "Age",
        "Gender",
        "Status",
        "Creator Type",
        "Pros",
        "Cons",
        "Total # of Clients",
        "Country",
        "State",
        "City",
    ],
    # All fields (no filtering)
    "full": None,
}


def _matches_patterns(field_name: str, patterns: list[re.Pattern]) -> bool:
    return any(pattern.search(field_name) for pattern in patterns)


def is_attachment_field(field_name: str) -> bool:
    """Detect if a field is likely an attachment field."""
    return _matches_patterns(field_name, ATTACHMENT_FIELD_PATTERNS)


def is_long_text_field(field_name: str) -> bool:
    """Detect if a field is likely a long text field."""
    return _matches_patterns(field_name, LONG_TEXT_FIELD_PATTERNS)


def get_field_preset(preset: str, all_fields: list[str] | None = None) -> list[str] | None:
    """
    Fields for a preset, or None for "all fields".

    When all_fields is given, preset fields missing from the table are dropped
    so Airtable does not reject the request with UNKNOWN_FIELD_NAME.
    """
    fields = FIELD_PRESETS.get(preset)
    if fields is None:
        return None
    if all_fields is not None:
        available = set(all_fields)
        fields = [f for f in fields if f in available]
    return list(fields)


def filter_fields(
    all_fields: list[str],
    include_fields: list[str] | None = None,
    exclude_fields: list[str] | None = None,
    exclude_attachments: bool = False,
    exclude_long_text: bool = False,
    preset: str | None = None,
    max_fields: int | None = None,
) -> list[str] | None:
    """
    Filter a table's fields.

    Precedence: include_fields, then preset, then the exclusions.

    Returns:
        Fields to request, or None when nothing was filtered out
        (Airtable returns every field by default)
    """
    if include_fields:
        return include_fields

    if preset:
        preset_fields = get_field_preset(preset, all_fields)
        if preset_fields is not None:
            return preset_fields

    fields = list(all_fields)

    if exclude_fields:
        excluded = set(exclude_fields)
        fields = [f for f in fields if f not in excluded]

    if exclude_attachments:
        fields = [f for f in fields if not is_attachment_field(f)]

    if exclude_long_text:
        fields = [f for f in fields if not is_long_text_field(f)]

    if max_fields and max_fields > 0:
        fields = fields[:max_fields]

    if len(fields) == len(all_fields):
        return None

    return fields
