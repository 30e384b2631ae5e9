from __future__ import annotations

import uuid
from enum import Enum

from ..extensions import db


def new_uuid() -> str:
    return str(uuid.uuid4())


def enum_column(enum_cls: type[Enum], **kwargs):
    """String-backed enum column storing member values, not names."""
    length = max(len(member.value) for member in enum_cls)
    return db.Column(
        db.Enum(
            enum_cls,
            native_enum=False,
            create_constraint=False,
            length=length,
            values_callable=lambda cls: [member.value for member in cls],
            validate_strings=True,
        ),
        **kwargs,
    )
