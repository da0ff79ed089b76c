"""Bot profile snapshot and knowledge source models.

Profiles come from the settings store and are read-only here.
"""

import json
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field


def _scalar(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False)


def render_value(value: Any, indent: int = 0) -> list[str]:
    """Render nested data as indented key/value lines without dropping anything."""
    pad = "  " * indent
    lines: list[str] = []

    if isinstance(value, dict):
        for key, item in value.items():
            if isinstance(item, (dict, list)) and item:
                lines.append(f"{pad}{key}:")
                lines.extend(render_value(item, indent + 1))
            else:
                lines.append(f"{pad}{key}: {_scalar(item)}")
    elif isinstance(value, list):
        for item in value:
            if isinstance(item, (dict, list)) and item:
                lines.append(f"{pad}-")
                lines.extend(render_value(item, indent + 1))
            else:
                lines.append(f"{pad}- {_scalar(item)}")
    else:
        lines.append(f"{pad}{_scalar(value)}")

    return lines


def render_inline(item: dict[str, Any]) -> str:
    """Render a flat mapping on one line: ``key: value | key: value``."""
    return " | ".join(f"{key}: {_scalar(value)}" for key, value in item.items())


class DocumentSource(BaseModel):
    name: str
    kind: Literal["pdf", "docx", "txt"] = "txt"
    content: str = ""
    enabled: bool = True
    category: str | None = None
    tags: list[str] = []


class URLSource(BaseModel):
    url: str
    title: str = ""
    content: str = ""
    enabled: bool = True
    category: str | None = None
    tags: list[str] = []


class _StructuredRecord(BaseModel, ABC):
    """Fields shared by every structured record kind."""

    name: str
    enabled: bool = True
    category: str | None = None
    tags: list[str] = []

    @abstractmethod
    def render(self) -> str:
        """Readable, lossless text of ``data``."""


class ProductsRecord(_StructuredRecord):
    """Product list, one mapping per product."""

    kind: Literal["products"] = "products"
    data: list[dict[str, Any]]

    def render(self) -> str:
        lines = []
        for index, product in enumerate(self.data, 1):
            lines.append(f"Product {index}:")
            lines.extend(render_value(product, indent=1))
        return "\n".join(lines)


class PricingRecord(_StructuredRecord):
    """Price table: either ``{plan: price}`` or a list of plan rows."""

    kind: Literal["pricing"] = "pricing"
    data: dict[str, Any] | list[dict[str, Any]]

    def render(self) -> str:
        if isinstance(self.data, dict):
            return "\n".join(render_value(self.data))
        return "\n".join(f"- {render_inline(row)}" for row in self.data)


class ServicesRecord(_StructuredRecord):
    """Service offerings, as plain descriptions or mappings."""

    kind: Literal["services"] = "services"
    data: list[dict[str, Any] | str]

    def render(self) -> str:
        lines = []
        for service in self.data:
            if isinstance(service, str):
                lines.append(f"- {service}")
            else:
                lines.append(f"- {render_inline(service)}")
        return "\n".join(lines)


class CatalogRecord(_StructuredRecord):
    """Free-form nested catalog."""

    kind: Literal["catalog"] = "catalog"
    data: dict[str, Any] | list[Any]

    def render(self) -> str:
        return "\n".join(render_value(self.data))


StructuredRecord = Annotated[
    Union[ProductsRecord, PricingRecord, ServicesRecord, CatalogRecord],
    Field(discriminator="kind"),
]


class BotProfile(BaseModel):
    bot_id: str = Field(min_length=1)
    name: str = "AI Assistant"
    welcome_message: str = "Hello! How can I help you today?"
    updated_at: datetime | None = None
    faqs: list[str] = []
    documents: list[DocumentSource] = []
    urls: list[URLSource] = []
    structured_data: list[StructuredRecord] = []

    @property
    def version(self) -> int:
        """Version stamp for cache keys: ``updated_at`` in epoch milliseconds."""
        if self.updated_at is None:
            return 0
        return int(self.updated_at.timestamp() * 1000)

    def enabled_documents(self) -> list[DocumentSource]:
        return [doc for doc in self.documents if doc.enabled]

    def enabled_urls(self) -> list[URLSource]:
        return [url for url in self.urls if url.enabled]

    def enabled_structured_data(self) -> list[StructuredRecord]:
        return [record for record in self.structured_data if record.enabled]
