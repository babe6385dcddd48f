"""Authentication-related Marshmallow schemas."""

from __future__ import annotations

from marshmallow import EXCLUDE, Schema, ValidationError, fields, validate


def _not_blank(value: str) -> None:
    if not value.strip():
        raise ValidationError("Field may not be blank.")


class _Input(Schema):
    class Meta:
        unknown = EXCLUDE


class RegisterSchema(_Input):
    """Input payload for account registration."""

    email = fields.Email(required=True, validate=validate.Length(max=254))
    password = fields.String(required=True, validate=validate.Length(min=6, max=128))
    first_name = fields.String(
        required=True, data_key="firstName", validate=[validate.Length(min=1, max=100), _not_blank]
    )
    last_name = fields.String(
        required=True, data_key="lastName", validate=[validate.Length(min=1, max=100), _not_blank]
    )


class LoginSchema(_Input):
    """Input payload for authenticating a user."""

    email = fields.Email(required=True, validate=validate.Length(max=254))
    password = fields.String(required=True, validate=validate.Length(min=1, max=128))


class RefreshSchema(_Input):
    """Input payload carrying the refresh token to rotate."""

    refresh_token = fields.String(
        required=True, data_key="refreshToken", validate=validate.Length(min=1, max=128)
    )


class TokenPairSchema(Schema):
    """Response payload containing an access/refresh token pair."""

    access_token = fields.String(required=True, data_key="accessToken")
    refresh_token = fields.String(required=True, data_key="refreshToken")
    token_type = fields.String(required=True, data_key="tokenType")
    expires_in = fields.Integer(required=True, data_key="expiresIn")
