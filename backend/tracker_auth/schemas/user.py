"""User resource schemas."""

from __future__ import annotations

from marshmallow import Schema, fields


class UserSchema(Schema):
    """Public representation of a user entity."""

    id = fields.Integer(required=True)
    email = fields.Email(required=True)
    first_name = fields.String(allow_none=True, data_key="firstName")
    last_name = fields.String(allow_none=True, data_key="lastName")
    full_name = fields.String(data_key="fullName")
    is_active = fields.Boolean(data_key="isActive")
    created_at = fields.DateTime(required=True, data_key="createdAt")
