"""
Explicit table layout for a nested set tree.

A TreeConfig is supplied once to the row store and the tree facade; column
names are validated here and never interpolated from caller data elsewhere.

Author: Vasiliy Zdanovskiy
email: vasilyvz@gmail.com
"""

from __future__ import annotations

import re
from typing import Any, Dict, Optional

from pydantic import (
    BaseModel,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
    model_validator,
)

from .constants import (
    DEFAULT_ID_COLUMN,
    DEFAULT_LEFT_COLUMN,
    DEFAULT_LEVEL_COLUMN,
    DEFAULT_PARENT_COLUMN,
    DEFAULT_PAYLOAD_COLUMNS,
    DEFAULT_RIGHT_COLUMN,
    DEFAULT_TABLE_NAME,
    RESERVED_NODE_ATTRIBUTES,
)
from .exceptions import ConfigurationError

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# Logical row keys used between the engine and the drivers
STRUCTURAL_KEYS = ("id", "parent_id", "left", "right", "level", "scope")


_IDENTIFIER_FIELDS = (
    "table_name",
    "id_column",
    "parent_column",
    "left_column",
    "right_column",
    "level_column",
    "scope_column",
    "order_column",
)


def _check_identifier(key: str, value: Optional[str]) -> Optional[str]:
    if value is not None and not _IDENTIFIER_RE.match(value):
        raise ConfigurationError(
            f"Invalid SQL identifier for {key}: {value!r}", config_key=key
        )
    return value


class TreeConfig(BaseModel):
    """Column layout and options for one nested set table.

    Attributes:
        table_name: Table holding the rows
        id_column: Primary key column (TEXT, uuid4 values)
        parent_column: Nullable parent reference column
        left_column: Left edge column
        right_column: Right edge column
        level_column: Depth column; levels are tracked only when set
        scope_column: Discriminator column; None means one forest per table
        order_column: Optional column used to order roots
        payload_columns: Caller-owned attribute columns (name -> SQL type)
    """

    model_config = {"extra": "forbid", "frozen": True}

    table_name: str = Field(default=DEFAULT_TABLE_NAME, description="Tree table")
    id_column: str = Field(default=DEFAULT_ID_COLUMN, description="Primary key column")
    parent_column: str = Field(
        default=DEFAULT_PARENT_COLUMN, description="Parent reference column"
    )
    left_column: str = Field(default=DEFAULT_LEFT_COLUMN, description="Left edge column")
    right_column: str = Field(
        default=DEFAULT_RIGHT_COLUMN, description="Right edge column"
    )
    level_column: Optional[str] = Field(
        default=DEFAULT_LEVEL_COLUMN, description="Depth column (None: untracked)"
    )
    scope_column: Optional[str] = Field(
        default=None, description="Scope discriminator column (None: unscoped)"
    )
    order_column: Optional[str] = Field(
        default=None, description="Column used to order roots"
    )
    payload_columns: Dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_PAYLOAD_COLUMNS),
        description="Payload column name -> SQL type",
    )

    def __init__(self, **data: Any) -> None:
        """Validate the layout.

        Raises:
            ConfigurationError: For unknown options, wrong value types or an
                inconsistent layout
        """
        try:
            super().__init__(**data)
        except ValidationError as e:
            error = e.errors()[0]
            key = ".".join(str(part) for part in error["loc"]) or "tree_config"
            raise ConfigurationError(
                f"Invalid tree configuration for {key}: {error['msg']}",
                config_key=key,
            ) from e

    @field_validator(*_IDENTIFIER_FIELDS)
    @classmethod
    def validate_identifier(cls, v: Optional[str], info: ValidationInfo) -> Optional[str]:
        """Validate that a column or table name is a plain SQL identifier."""
        return _check_identifier(info.field_name, v)

    @field_validator("payload_columns")
    @classmethod
    def validate_payload_names(cls, v: Dict[str, str]) -> Dict[str, str]:
        """Validate payload column names."""
        for name in v:
            _check_identifier("payload_columns", name)
        return v

    @model_validator(mode="after")
    def validate_layout(self) -> "TreeConfig":
        """Validate distinct structural columns, payload names and order column."""
        structural = [c for c in self.structural_columns().values() if c]
        if len(set(structural)) != len(structural):
            raise ConfigurationError(
                f"Structural columns must be distinct: {structural}",
                config_key="columns",
            )

        for name in self.payload_columns:
            if name in RESERVED_NODE_ATTRIBUTES or name in structural:
                raise ConfigurationError(
                    f"Payload column {name!r} collides with a structural column",
                    config_key="payload_columns",
                )

        if self.order_column is not None and self.order_column not in (
            set(structural) | set(self.payload_columns)
        ):
            raise ConfigurationError(
                f"order_column {self.order_column!r} is not a known column",
                config_key="order_column",
            )
        return self

    @property
    def tracks_level(self) -> bool:
        """Whether depth is stored in a column."""
        return self.level_column is not None

    @property
    def is_scoped(self) -> bool:
        """Whether rows are partitioned by a scope column."""
        return self.scope_column is not None

    def structural_columns(self) -> Dict[str, Optional[str]]:
        """Map logical structural keys to physical column names.

        Returns:
            Dictionary keyed by STRUCTURAL_KEYS; untracked keys map to None
        """
        return {
            "id": self.id_column,
            "parent_id": self.parent_column,
            "left": self.left_column,
            "right": self.right_column,
            "level": self.level_column,
            "scope": self.scope_column,
        }

    def column_for(self, key: str) -> str:
        """Return the physical column for a logical row key.

        Raises:
            ConfigurationError: If the key is not stored by this layout
        """
        column = self.structural_columns().get(key)
        if column is None and key in self.payload_columns:
            column = key
        if column is None:
            raise ConfigurationError(
                f"Column {key!r} is not part of table {self.table_name}",
                config_key=key,
            )
        return column
