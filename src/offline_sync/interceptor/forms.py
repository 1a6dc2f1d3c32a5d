"""Form model and serialization for offline-capable form submissions."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Union


@dataclass(frozen=True)
class FileField:
    """An uploaded file attached to a form field (cannot be queued durably)."""

    filename: str
    content: bytes
    content_type: str = "application/octet-stream"


FieldValue = Union[str, int, float, bool, None, FileField, list]


@dataclass
class OfflineForm:
    """
    A form submission issued by the application.

    Fields:
    - action: Target URL configured on the form
    - method: HTTP verb (defaults to POST like an HTML form)
    - fields: Field name -> value (lists for repeated fields)
    - offline_support: Only forms marked for offline support are queued
    """

    action: str
    fields: Mapping[str, FieldValue] = field(default_factory=dict)
    method: str = "POST"
    offline_support: bool = True

    @property
    def file_fields(self) -> list[str]:
        """Names of fields carrying file uploads."""
        names = []
        for name, value in self.fields.items():
            values = value if isinstance(value, list) else [value]
            if any(isinstance(v, FileField) for v in values):
                names.append(name)
        return names


def _field_to_str(value: FieldValue) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "on"
    return str(value)


def serialize_form(form: OfflineForm) -> tuple[dict[str, str | list[str]], list[str]]:
    """
    Serialize form fields into a plain, JSON-safe map.

    File fields are left out and reported separately. Fields set to ``False``
    are omitted, like an unchecked checkbox in a browser form.

    Returns:
        ``(fields, dropped_file_fields)``
    """
    serialized: dict[str, str | list[str]] = {}
    dropped = form.file_fields

    for name, value in form.fields.items():
        if name in dropped or value is False:
            continue
        if isinstance(value, list):
            serialized[name] = [_field_to_str(v) for v in value if v is not False]
        else:
            serialized[name] = _field_to_str(value)

    return serialized, dropped


def split_files(form: OfflineForm) -> tuple[dict[str, str | list[str]], list[tuple[str, tuple[str, bytes, str]]]]:
    """Split a form into ``data=`` and ``files=`` arguments for an online submit."""
    data, _ = serialize_form(form)
    files = []
    for name in form.file_fields:
        value = form.fields[name]
        for item in value if isinstance(value, list) else [value]:
            if isinstance(item, FileField):
                files.append((name, (item.filename, item.content, item.content_type)))
    return data, files
