"""Payload checks applied after a request has been authenticated."""

from __future__ import annotations

from typing import Any, List, Mapping

from models.records import AuthenticatedContext, FieldType
from services.coercion import is_blank, parse_boolean, parse_decimal, parse_integer
from services.errors import (
    InvalidCommandError,
    InvalidIndexError,
    InvalidPayloadError,
    InvalidValueError,
    MissingFieldsError,
)

COMMAND_FIELD = "cmd"
INDEX_FIELD = "dIndex"
BATTERY_FIELD = "battery"


class Validator:
    """Runs the presence, framing and numeric checks in order.

    The first failing check raises; later checks are not attempted.
    """

    def validate(self, context: AuthenticatedContext, body: Any) -> None:
        if not isinstance(body, Mapping):
            raise InvalidPayloadError("Request body must be a JSON object")

        config = context.config
        self._check_required(context, body)

        if config.expected_command is not None:
            actual = body.get(COMMAND_FIELD)
            if str(actual) != config.expected_command:
                raise InvalidCommandError(config.expected_command, actual)

        if config.expected_index is not None:
            actual = body.get(INDEX_FIELD)
            if str(actual) != config.expected_index:
                raise InvalidIndexError(config.expected_index, actual)

        self._check_values(context, body)

    @staticmethod
    def _check_required(context: AuthenticatedContext, body: Mapping[str, Any]) -> None:
        missing: List[str] = [
            name for name in context.config.required_fields if is_blank(body.get(name))
        ]
        if missing:
            raise MissingFieldsError(missing)

    @staticmethod
    def _check_values(context: AuthenticatedContext, body: Mapping[str, Any]) -> None:
        try:
            parse_decimal(body.get(BATTERY_FIELD))
        except ValueError as exc:
            raise InvalidValueError(BATTERY_FIELD, body.get(BATTERY_FIELD)) from exc

        for spec in context.config.fields:
            if spec.name == BATTERY_FIELD:
                continue
            value = body.get(spec.name)
            if is_blank(value):
                continue
            try:
                if spec.type is FieldType.integer:
                    parse_integer(value)
                elif spec.type is FieldType.decimal:
                    parse_decimal(value)
                elif spec.type is FieldType.boolean:
                    parse_boolean(value)
            except ValueError as exc:
                kind = "boolean" if spec.type is FieldType.boolean else "numeric"
                raise InvalidValueError(spec.name, value, kind) from exc
