# app/api/responses.py
"""Success envelope: ``{"success": true, "message"?: ..., "data": ...}``."""

from typing import Any, Iterable, Optional, Type

from pydantic import BaseModel


def dump(schema: Type[BaseModel], obj) -> Optional[dict]:
    if obj is None:
        return None
    return schema.model_validate(obj).model_dump(mode="json")


def dump_many(schema: Type[BaseModel], objs: Iterable) -> list:
    return [dump(schema, obj) for obj in objs]


def ok(data: Any = None, message: Optional[str] = None) -> dict:
    body = {"success": True}
    if message:
        body["message"] = message
    if data is not None:
        body["data"] = data
    return body
