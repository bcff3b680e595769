"""Token-related Marshmallow schemas."""

from __future__ import annotations

from marshmallow import Schema, fields


class MessageSchema(Schema):
    """Plain acknowledgement payload."""

    message = fields.String(required=True)


class TokenRefreshedSchema(MessageSchema):
    """Response payload after a successful refresh; tokens travel via the transport."""

    expires_at = fields.Integer(required=True)


class PrincipalSchema(Schema):
    """Identity of the authenticated principal."""

    id = fields.Function(lambda obj: str(obj.id))
    token_issued_at = fields.DateTime(allow_none=True)
