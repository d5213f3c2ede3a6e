"""
Typed key-value settings.

Values are stored as text next to their type and cast back on read.
"""

from __future__ import annotations

import json
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from pos_shared.config.constants import SettingKeys, SettingType, THEMES, BASE_CURRENCY_CODE
from pos_shared.config.logging import get_logger
from pos_shared.utils.exceptions import ValidationError
from pos_api.models import Setting

logger = get_logger(__name__)

TRUTHY = {"1", "true", "yes", "on"}

DEFAULTS: dict[str, Any] = {
    SettingKeys.THEME: "system",
    SettingKeys.DEFAULT_CURRENCY: BASE_CURRENCY_CODE,
}


def cast_value(value: str | None, value_type: str) -> Any:
    """Convert a stored text value to its Python type."""
    if value is None:
        return None
    if value_type == SettingType.INTEGER:
        return int(value)
    if value_type == SettingType.BOOLEAN:
        return value.strip().lower() in TRUTHY
    if value_type == SettingType.JSON:
        return json.loads(value)
    return value


def infer_type(value: Any) -> str:
    # bool is a subclass of int, so it must be checked first
    if isinstance(value, bool):
        return SettingType.BOOLEAN
    if isinstance(value, int):
        return SettingType.INTEGER
    if isinstance(value, (dict, list)):
        return SettingType.JSON
    return SettingType.STRING


def serialize_value(value: Any, value_type: str) -> str:
    if value_type == SettingType.BOOLEAN:
        if isinstance(value, str):
            return "1" if value.strip().lower() in TRUTHY else "0"
        return "1" if value else "0"
    if value_type == SettingType.JSON:
        return json.dumps(value, ensure_ascii=False)
    if value_type == SettingType.INTEGER:
        try:
            return str(int(value))
        except (TypeError, ValueError):
            raise ValidationError(f"Valor entero inválido: {value!r}", field="value")
    return str(value)


class ConfigurationService:
    """Read and write application settings."""

    def __init__(self, db: Session):
        self._db = db

    def _row(self, key: str) -> Setting | None:
        return self._db.scalar(select(Setting).where(Setting.key == key))

    def get(self, key: str, default: Any = None) -> Any:
        row = self._row(key)
        if row is None:
            return default if default is not None else DEFAULTS.get(key)
        return cast_value(row.value, row.value_type)

    def get_row(self, key: str) -> Setting | None:
        return self._row(key)

    def set(
        self,
        key: str,
        value: Any,
        value_type: str | None = None,
        description: str | None = None,
    ) -> Setting:
        """Insert or update a setting, inferring its type from `value` when not given."""
        if value_type is None:
            existing = self._row(key)
            value_type = existing.value_type if existing is not None else infer_type(value)
        if value_type not in SettingType.ALL:
            raise ValidationError(f"Tipo de configuración inválido: {value_type}", field="value_type")
        if key == SettingKeys.THEME and value not in THEMES:
            raise ValidationError(
                f"Tema inválido: {value}. Opciones: {', '.join(THEMES)}", field="value"
            )

        text = serialize_value(value, value_type)
        row = self._row(key)
        if row is None:
            row = Setting(key=key, value=text, value_type=value_type, description=description)
            self._db.add(row)
        else:
            row.value = text
            row.value_type = value_type
            if description is not None:
                row.description = description
        self._db.flush()
        logger.info("Setting updated", key=key, value_type=value_type)
        return row

    def all(self) -> dict[str, Any]:
        rows = self._db.scalars(select(Setting).order_by(Setting.key.asc())).all()
        return {row.key: cast_value(row.value, row.value_type) for row in rows}

    def describe_all(self) -> list[dict[str, Any]]:
        rows = self._db.scalars(select(Setting).order_by(Setting.key.asc())).all()
        return [
            {
                "key": row.key,
                "value": cast_value(row.value, row.value_type),
                "value_type": row.value_type,
                "description": row.description,
            }
            for row in rows
        ]
