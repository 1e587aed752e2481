"""
combine_schema.py — Marshmallow schemas for the combine API.
"""
from marshmallow import Schema, fields, validate, validates, ValidationError


class CombineRequestSchema(Schema):
    assets = fields.List(
        fields.String(),
        required=True,
        validate=validate.Length(min=1, error="At least one asset is required"),
    )
    path = fields.String(load_default=None, allow_none=True)

    @validates("assets")
    def validate_assets(self, value, **kwargs):
        if any(not item or not item.strip() for item in value):
            raise ValidationError("Asset paths cannot be empty")


class CombineResponseSchema(Schema):
    url = fields.String()
    assets = fields.List(fields.String())
