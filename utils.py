from typing import Any, Dict

from bson import ObjectId
from fastapi import HTTPException
from pydantic import EmailStr, TypeAdapter, ValidationError

_email_adapter = TypeAdapter(EmailStr)


def to_obj_id(id_str: str) -> ObjectId:
    try:
        return ObjectId(id_str)
    except Exception:
        raise HTTPException(status_code=400, detail="Invalid id")


def normalize_email(email: str) -> str:
    """Validate ``email`` the way ``EmailStr`` body fields are, so path lookups match stored values."""
    try:
        return _email_adapter.validate_python(email)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=f"Invalid email: {e.errors()[0]['msg']}")


def sanitize(doc: Dict) -> Dict:
    if not doc:
        return doc
    d = {**doc}
    if "_id" in d:
        d["id"] = str(d.pop("_id"))
    # Convert ObjectId in other fields if any
    for k, v in list(d.items()):
        if isinstance(v, ObjectId):
            d[k] = str(v)
    return d


def write_result(res: Any) -> Dict[str, Any]:
    """Summary of a pymongo UpdateResult/DeleteResult."""
    out: Dict[str, Any] = {"acknowledged": res.acknowledged}
    for field in ("matched_count", "modified_count", "deleted_count"):
        if hasattr(res, field):
            out[field] = getattr(res, field)
    return out
